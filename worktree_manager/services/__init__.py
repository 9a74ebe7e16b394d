"""Services wrapping git, the filesystem, the status file and external tools."""
