"""
ECR Deploy Watcher

Redeploys ECS services when a new image is pushed under a watched tag:
- events: EventBridge "ECR Image Action" parsing
- watcher: tag filtering, bounded retries, fan-out over matching targets
- control_plane: ECS UpdateService with forceNewDeployment
- lambda_handler / cli: entry points
"""
