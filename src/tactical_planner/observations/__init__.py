"""
Observation subsystem.

Components:
- models.py: data structures (Observation, ObservationStatus)
- repo.py: capture, buffer projection and analysis
- bridge.py: converting a ready observation into a task
"""
