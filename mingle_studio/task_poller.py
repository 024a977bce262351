"""
Task Poller

Checks the status of a task-based provider job until it reaches a terminal
state or the poll ceiling:

    Pending -> InProgress -> Completed | Failed | TimedOut

Every poll, including those that hit a network error or a non-2xx answer,
counts against the same ceiling.
"""

import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import (
    MalformedResponseError,
    TaskFailedError,
    TimeoutError,
    create_api_error,
)
from .models import GenerationTask, TaskStatus
from .studio_logger import logger

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_POLLS = 30
DEFAULT_POLL_TIMEOUT = 30

SUCCESS_STATUSES = ("COMPLETED", "SUCCESS", "SUCCEEDED")
FAILURE_STATUSES = ("FAILED", "FAILURE", "ERROR")

# Credential and quota failures end polling immediately
TERMINAL_POLL_STATUS_CODES = (401, 402, 403, 429)

STATUS_PATHS = ("task_status", "status", "data.status")
RESULT_PATHS = ("generated", "data.generated")


def get_nested_value(data: Any, path: str) -> Any:
    """Get value from nested dict using dot notation path"""
    value = data
    for key in path.split('.'):
        if isinstance(value, dict):
            value = value.get(key)
        elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return None
    return value


def extract_generated_urls(data: Dict) -> List[str]:
    """Result URLs from `generated` or `data.generated` (strings or {url: ...})"""
    for path in RESULT_PATHS:
        generated = get_nested_value(data, path)
        if not generated:
            continue
        urls = []
        for item in generated:
            if isinstance(item, str) and item:
                urls.append(item)
            elif isinstance(item, dict) and item.get("url"):
                urls.append(item["url"])
        if urls:
            return urls
    return []


class TaskPoller:
    """
    Poll loop for one provider's status endpoint.

    A poller is stateless between calls; all per-job state lives on the
    GenerationTask passed to poll(), so independent loops never share state.
    """

    def __init__(
        self,
        session: requests.Session,
        provider_id: str,
        status_url_template: str,
        headers: Optional[Dict[str, str]] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_POLLS,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = DEFAULT_POLL_TIMEOUT,
    ):
        self.session = session
        self.provider_id = provider_id
        self.status_url_template = status_url_template
        self.headers = headers or {}
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.timeout = timeout

    def status_url(self, task_id: str) -> str:
        return self.status_url_template.format(task_id=task_id)

    @staticmethod
    def read_status(data: Dict) -> str:
        for path in STATUS_PATHS:
            status = get_nested_value(data, path)
            if isinstance(status, str) and status:
                return status.strip().upper()
        return ""

    def poll(self, task: GenerationTask) -> List[str]:
        """
        Poll until the task completes and return its result URLs.

        Mutates task.status and task.attempts as it goes.

        Raises:
            CredentialError / RateLimitOrQuotaError: 401/402/403/429 while polling
            TaskFailedError: backend reported FAILED
            MalformedResponseError: COMPLETED without any generated result
            TimeoutError: ceiling reached without a terminal status
        """
        url = self.status_url(task.task_id)
        task.status = TaskStatus.IN_PROGRESS
        logger.info(f"📋 Polling task {task.task_id} ({self.provider_id}), "
                    f"up to {self.max_attempts} x {self.interval}s")

        while task.attempts < self.max_attempts:
            self.sleep(self.interval)
            task.attempts += 1

            try:
                resp = self.session.get(url, headers=self.headers, timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning(f"⚠️ Poll {task.attempts}/{self.max_attempts} network error: {e}")
                continue

            if resp.status_code in TERMINAL_POLL_STATUS_CODES:
                task.status = TaskStatus.FAILED
                task.error_message = f"HTTP {resp.status_code} while polling"
                raise create_api_error(self.provider_id, resp.status_code, resp.text, url)

            if not 200 <= resp.status_code < 300:
                logger.warning(f"⚠️ Poll {task.attempts}/{self.max_attempts} returned HTTP {resp.status_code}")
                continue

            try:
                data = resp.json()
            except ValueError:
                logger.warning(f"⚠️ Poll {task.attempts}/{self.max_attempts} returned non-JSON body")
                continue
            if not isinstance(data, dict):
                continue

            status = self.read_status(data)
            logger.debug(f"Poll {task.attempts}/{self.max_attempts} status: {status or '<none>'}")

            if status in SUCCESS_STATUSES:
                urls = extract_generated_urls(data)
                if not urls:
                    task.status = TaskStatus.FAILED
                    task.error_message = "Task completed without generated images"
                    raise MalformedResponseError(
                        self.provider_id,
                        f"Task {task.task_id} completed without generated images",
                        response_body=resp.text,
                    )
                task.status = TaskStatus.COMPLETED
                task.result_urls = urls
                logger.info(f"✅ Task {task.task_id} completed after {task.attempts} polls")
                return urls

            if status in FAILURE_STATUSES:
                task.status = TaskStatus.FAILED
                task.error_message = f"Task {task.task_id} failed"
                raise TaskFailedError(self.provider_id, task.task_id)

        task.status = TaskStatus.TIMED_OUT
        task.error_message = f"Timed out after {task.attempts} polls"
        raise TimeoutError(self.provider_id, task.attempts, self.interval, task.task_id)
