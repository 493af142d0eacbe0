"""
Rolling deployments for Amazon ECS services.

Overlays new container images and environment variables onto a registered
task definition, registers the result as a new revision, points a service at
it and reports the service events recorded during the rollout.
"""

__version__ = "0.1.0"
