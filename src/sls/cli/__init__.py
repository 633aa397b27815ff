"""Command line tooling for inspecting, configuring and deploying services."""
