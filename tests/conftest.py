from tests.fixtures.aws_fixtures import (  # noqa: F401
    aws_credentials,
    ecs_client,
    ecs_service,
    mocked_aws,
)
from tests.fixtures.watcher_fixtures import (  # noqa: F401
    ecr_push_event,
    image_event,
    reset_cached_config,
    target,
    watcher_env,
)
