"""Network library. ``get`` blocks for the duration of the request."""

from __future__ import annotations

from typing import List, Optional

import requests

from functions import ParameterCount
from libraries import LibraryAPI
from literals import Literal, abort_evaluation, literal_to_string, make_string

HEXPAT_LIBRARY_NAME = "http"
HEXPAT_LIBRARY_API_VERSION = 1

NAMESPACE = "std::http"


def _get(_ctx, params: List[Literal]) -> Optional[Literal]:
    url = literal_to_string(params[0], False)
    try:
        response = requests.get(url)
    except requests.RequestException as exc:
        abort_evaluation(f"failed to fetch {url}: {exc}")
    return make_string(response.text)


def hexpat_register(api: LibraryAPI) -> None:
    api.metadata(name="http", version="1.0.0")
    api.add_dangerous_function(NAMESPACE, "get", ParameterCount.exactly(1), _get, doc="get(url) -> body")
