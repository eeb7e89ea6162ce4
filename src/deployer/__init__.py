"""Build the runtime image, push it, and roll it out to the cluster."""
