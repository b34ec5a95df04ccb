"""Clientes tipados de las Edge Functions del backend."""

from adapters.api.agents import SalesAgentsAPI, SuperAdminAgentsAPI
from adapters.api.csv_import import OrganizationCSVImportAPI
from adapters.api.organizations import OrganizationsAPI
from adapters.api.sales import SalesAdvancedAPI
from adapters.api.stoves import StoveIdsAPI

__all__ = [
    "OrganizationCSVImportAPI",
    "OrganizationsAPI",
    "SalesAdvancedAPI",
    "SalesAgentsAPI",
    "StoveIdsAPI",
    "SuperAdminAgentsAPI",
]
