"""Environment-variable substitution for manifest templates.

Supported syntax, following ``envsubst`` with stricter failure handling:

* ``$NAME`` and ``${NAME}`` are replaced by the value of ``NAME``.
* ``${NAME:-fallback}`` uses ``fallback`` when ``NAME`` is unset or empty.
* ``${NAME-fallback}`` uses ``fallback`` only when ``NAME`` is unset.
  The fallback is rendered in turn, so ``${IMAGE:-${DEFAULT_IMAGE}}`` works.
* ``$$`` is left untouched, which keeps Kubernetes' own ``$$(VAR)`` escape
  intact. A ``$`` not followed by a name or ``{`` is also left untouched.

Unlike ``envsubst``, an undefined variable without a fallback is an error,
and so is a ``${`` that does not form a valid placeholder. A rendered
document never contains an unresolved ``${``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Mapping, Optional, Set

import yaml

from .errors import TemplateRenderError, UndefinedVariableError

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml")

_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_BRACED_HEAD = re.compile(r"(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?P<operator>:?-)?")
# "${" that is not the tail of a "$$" pair
_UNRESOLVED = re.compile(r"(?<!\$)\$\{")


def render_template(text: str, environ: Mapping[str, str], *, source: str = "<template>") -> str:
    """Substitute every placeholder in ``text`` or raise without partial output."""
    missing: Set[str] = set()
    rendered = _substitute(text, 0, len(text), environ, missing, source)
    if missing:
        raise UndefinedVariableError(sorted(missing), source=source)

    leftover = _UNRESOLVED.search(rendered)
    if leftover:
        raise TemplateRenderError(
            f"unresolved placeholder in rendered output near {rendered[leftover.start():leftover.start() + 20]!r}",
            source=source,
        )
    return rendered


def _substitute(
    text: str,
    start: int,
    end: int,
    environ: Mapping[str, str],
    missing: Set[str],
    source: str,
) -> str:
    parts: List[str] = []
    position = start
    while position < end:
        dollar = text.find("$", position, end)
        if dollar == -1:
            parts.append(text[position:end])
            break
        parts.append(text[position:dollar])
        following = text[dollar + 1] if dollar + 1 < end else ""

        if following == "$":
            parts.append("$$")
            position = dollar + 2
            continue

        if following == "{":
            close = _matching_brace(text, dollar + 1, end)
            if close is None:
                raise _malformed(text, dollar, source)
            parts.append(_expand(text, dollar, close, environ, missing, source))
            position = close + 1
            continue

        name = _NAME.match(text, dollar + 1, end)
        if name:
            value = environ.get(name.group(0))
            if value is None:
                missing.add(name.group(0))
                value = ""
            parts.append(value)
            position = name.end()
            continue

        parts.append("$")
        position = dollar + 1

    return "".join(parts)


def _expand(
    text: str,
    dollar: int,
    close: int,
    environ: Mapping[str, str],
    missing: Set[str],
    source: str,
) -> str:
    """Expand the ``${...}`` spanning ``text[dollar:close + 1]``."""
    head = _BRACED_HEAD.match(text, dollar + 2, close)
    if not head or (head.group("operator") is None and head.end() != close):
        raise _malformed(text, dollar, source)

    name = head.group("name")
    operator = head.group("operator")
    value = environ.get(name)

    use_fallback = (operator == ":-" and not value) or (operator == "-" and value is None)
    if use_fallback:
        return _substitute(text, head.end(), close, environ, missing, source)
    if value is None:
        missing.add(name)
        return ""
    return value


def _matching_brace(text: str, opening: int, end: int) -> Optional[int]:
    depth = 0
    for index in range(opening, end):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _malformed(text: str, position: int, source: str) -> TemplateRenderError:
    line = text.count("\n", 0, position) + 1
    return TemplateRenderError(f"malformed placeholder at line {line}", source=source)


def render_tree(template_dir: Path, output_dir: Path, environ: Mapping[str, str]) -> int:
    """
    Render every file below ``template_dir`` into the same relative path under ``output_dir``.

    Returns:
        Number of files rendered.
    """
    if not template_dir.is_dir():
        raise TemplateRenderError("template directory not found", source=str(template_dir))

    output_dir.mkdir(parents=True, exist_ok=True)
    rendered_files = 0
    for entry in sorted(template_dir.iterdir()):
        target = output_dir / entry.name
        if entry.is_dir():
            rendered_files += render_tree(entry, target, environ)
            continue
        target.write_text(render_template(entry.read_text(), environ, source=str(entry)))
        rendered_files += 1

    logger.debug("Rendered %d file(s) from %s into %s", rendered_files, template_dir, output_dir)
    return rendered_files


def collect_manifest_files(path: Path) -> List[Path]:
    """Return the manifest file itself, or the sorted YAML files under a directory."""
    if path.is_file():
        return [path]
    if path.is_dir():
        return sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in MANIFEST_SUFFIXES)
    raise TemplateRenderError("manifest template not found", source=str(path))


def load_manifest_documents(path: Path, environ: Mapping[str, str]) -> str:
    """
    Render a manifest file or directory into a single multi-document YAML stream.

    Each rendered file must parse as YAML so that a broken substitution never
    reaches the cluster.
    """
    files = collect_manifest_files(path)
    if not files:
        raise TemplateRenderError("no YAML manifests found", source=str(path))

    documents: List[str] = []
    for manifest_file in files:
        rendered = render_template(manifest_file.read_text(), environ, source=str(manifest_file))
        try:
            list(yaml.safe_load_all(rendered))
        except yaml.YAMLError as exc:
            raise TemplateRenderError(f"rendered manifest is not valid YAML: {exc}", source=str(manifest_file)) from exc
        documents.append(rendered.strip("\n"))

    return "\n---\n".join(documents) + "\n"


def write_rendered_manifests(path: Path, output_dir: Path, environ: Mapping[str, str]) -> int:
    """Write the rendered form of a manifest file or template directory under ``output_dir``."""
    if path.is_dir():
        return render_tree(path, output_dir, environ)
    if not path.is_file():
        raise TemplateRenderError("manifest template not found", source=str(path))

    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / path.name).write_text(render_template(path.read_text(), environ, source=str(path)))
    return 1
