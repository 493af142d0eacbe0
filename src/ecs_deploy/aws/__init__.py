"""
AWS adapters for the deployment pipeline.

Contains the ECS client manager, the task definition store, the task
definition builder/registrar and the service manager that drives rollouts.
"""
