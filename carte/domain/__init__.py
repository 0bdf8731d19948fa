"""Domain objects and collaborator contracts."""
