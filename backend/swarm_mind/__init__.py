"""Backend package for the Swarm Mind collective.

This package contains the pheromone channel, the agent state machine and
decision engine, swarm orchestration, persistence, and the dashboard API.
"""
