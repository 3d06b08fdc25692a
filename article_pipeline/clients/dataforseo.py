import base64
import logging
from typing import Dict, List, Optional

import requests

from ..errors import DataForSEOError

logger = logging.getLogger(__name__)

TASK_OK = 20000


class DataForSEOClient:
    """Client for the DataForSEO live Google organic SERP endpoint."""

    BASE_URL = "https://api.dataforseo.com/v3"

    def __init__(self, login: Optional[str], password: Optional[str], timeout: float = 30.0):
        self.timeout = timeout
        self.session = requests.Session()
        if login and password:
            token = base64.b64encode(f"{login}:{password}".encode()).decode("utf-8")
            self.headers = {
                "Authorization": f"Basic {token}",
                "Content-Type": "application/json",
            }
        else:
            self.headers = {"Content-Type": "application/json"}
            logger.warning("DataForSEO credentials missing.")

    @property
    def configured(self) -> bool:
        return "Authorization" in self.headers

    def search(self, keyword: str, location_code: int = 2840, language_code: str = "en",
               depth: int = 10) -> List[Dict]:
        """Return the raw result items for ``keyword``.

        Raises:
            DataForSEOError: the provider answered with a non-success status code.
            requests.RequestException: the request itself failed.
        """
        if not self.configured:
            raise DataForSEOError("DataForSEO credentials are not configured")

        payload = [{
            "keyword": keyword,
            "location_code": location_code,
            "language_code": language_code,
            "device": "desktop",
            "os": "windows",
            "depth": depth,
        }]

        response = self.session.post(
            f"{self.BASE_URL}/serp/google/organic/live/advanced",
            headers=self.headers,
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()

        if data.get("status_code") not in (None, TASK_OK):
            raise DataForSEOError(data.get("status_message", "DataForSEO request failed"),
                                  status_code=data.get("status_code"))

        tasks = data.get("tasks") or []
        if not tasks:
            raise DataForSEOError("DataForSEO returned no tasks")

        task = tasks[0]
        if task.get("status_code") != TASK_OK:
            raise DataForSEOError(task.get("status_message", "DataForSEO task failed"),
                                  status_code=task.get("status_code"))

        results = task.get("result") or []
        if not results:
            return []
        return results[0].get("items") or []
