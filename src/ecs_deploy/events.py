"""Service events that belong to a deployment window."""
import logging
from typing import Iterable, List, Union

from ecs_deploy.models import DeploymentWindow, ServiceEvent, to_sortable_timestamp

logger = logging.getLogger(__name__)


def filter_events(events: Iterable[ServiceEvent],
                  since: Union[DeploymentWindow, str]) -> List[ServiceEvent]:
    """Events created at or after ``since``, oldest first."""
    if isinstance(since, DeploymentWindow):
        lower_bound = since.since
    else:
        lower_bound = to_sortable_timestamp(since)
    selected = [event for event in events if event.created_at >= lower_bound]
    return sorted(selected, key=lambda event: event.created_at)


def correlate(store, cluster: str, service: str,
              since: Union[DeploymentWindow, str]) -> List[ServiceEvent]:
    """Fetch the service's events and keep those in the deployment window."""
    events = filter_events(store.fetch_service_events(cluster, service), since)
    logger.info(f"{len(events)} service event(s) since {getattr(since, 'since', since)}")
    return events
