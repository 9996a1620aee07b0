"""Core building blocks: errors, configuration, project context, metadata."""
