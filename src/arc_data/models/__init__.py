"""
Data models over the document store.

Each model validates its input before any I/O and publishes its changes on
the event bus.
"""

from arc_data.models.auth_data import AuthDataModel
from arc_data.models.base import BaseModel, ChangeRecord, Page
from arc_data.models.certificates import ClientCertificateModel
from arc_data.models.host_rules import HostRulesModel
from arc_data.models.projects import ProjectModel
from arc_data.models.requests import RequestModel
from arc_data.models.url_history import UrlHistoryModel, WebsocketUrlHistoryModel
from arc_data.models.variables import VariablesModel

__all__ = [
    "AuthDataModel",
    "BaseModel",
    "ChangeRecord",
    "ClientCertificateModel",
    "HostRulesModel",
    "Page",
    "ProjectModel",
    "RequestModel",
    "UrlHistoryModel",
    "VariablesModel",
    "WebsocketUrlHistoryModel",
]
