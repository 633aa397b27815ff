"""Operational flows: env reports, parameter management, builds and deploys."""
