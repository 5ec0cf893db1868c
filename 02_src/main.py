"""Main entry point for Agent Workspace."""

from agent_workspace.__main__ import main

if __name__ == "__main__":
    main()
