"""Utility for resolving worker names to IDs."""

from workledger.domain.workforce import WorkforceService


def resolve_worker(service: WorkforceService, worker: str) -> str:
    """Resolve worker name or ID to worker ID.

    Args:
        service: WorkforceService instance
        worker: Worker ID or name (matched ignoring case)

    Returns:
        Worker ID

    Raises:
        ValueError: If worker is not found
    """
    if service.get_worker(worker) is not None:
        return worker

    match = service.find_worker_by_name(worker)
    if match is not None:
        return match.id

    raise ValueError(f"Worker '{worker}' not found")
