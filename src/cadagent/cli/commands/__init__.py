"""cadagent CLI subcommands."""
