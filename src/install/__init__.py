"""Local install pipeline: extraction, filesystem operations and the installer."""
