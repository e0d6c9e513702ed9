"""Export and import orchestration."""
