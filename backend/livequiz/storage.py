from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from azure.core.credentials import TokenCredential
from azure.core.exceptions import HttpResponseError, ResourceExistsError
from azure.storage.blob import (
    BlobSasPermissions,
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
)

from .db import Settings
from .utils import note_filename

NOTE_CONTENT_TYPE = "text/markdown; charset=utf-8"


class NoteStorage:
    """Uploads generated study notes to Azure Blob Storage."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._service: BlobServiceClient | None = None
        self._container_initialised = False
        self._container_is_private: bool | None = None

    @property
    def configured(self) -> bool:
        return bool(self.settings.AZURE_STORAGE_CONNECTION_STRING)

    def _get_blob_service(self) -> BlobServiceClient:
        if self._service is None:
            if not self.settings.AZURE_STORAGE_CONNECTION_STRING:
                raise RuntimeError("Azure Blob Storage is not configured")
            self._service = BlobServiceClient.from_connection_string(self.settings.AZURE_STORAGE_CONNECTION_STRING)
        return self._service

    async def upload_note(self, topic: str, content: str) -> str:
        if not content:
            raise ValueError("Note was empty")

        service = self._get_blob_service()
        container_name = self.settings.AZURE_STORAGE_CONTAINER
        container_client = service.get_container_client(container_name)

        if not self._container_initialised:
            await self._initialise_container(container_client)

        blob_name = f"notes/{uuid.uuid4().hex}/{note_filename(topic)}"
        blob_client = container_client.get_blob_client(blob_name)

        await asyncio.to_thread(
            blob_client.upload_blob,
            content.encode("utf-8"),
            overwrite=True,
            content_settings=ContentSettings(content_type=NOTE_CONTENT_TYPE),
        )

        if self._container_is_private:
            return await self._build_private_blob_url(service, container_name, blob_name, blob_client.url)

        return blob_client.url

    async def _initialise_container(self, container_client) -> None:
        try:
            await asyncio.to_thread(container_client.create_container, public_access="blob")
        except ResourceExistsError:
            pass
        except HttpResponseError as exc:
            error_code = getattr(exc, "error_code", None) or getattr(getattr(exc, "error", None), "code", None)
            if error_code != "PublicAccessNotPermitted":
                raise
            try:
                await asyncio.to_thread(container_client.create_container)
            except ResourceExistsError:
                pass
            self._container_is_private = True
        else:
            self._container_is_private = False

        if self._container_is_private is None:
            properties = await asyncio.to_thread(container_client.get_container_properties)
            public_access = getattr(properties, "public_access", None)
            self._container_is_private = public_access not in {"blob", "container"}
        self._container_initialised = True

    async def _build_private_blob_url(
        self, service: BlobServiceClient, container_name: str, blob_name: str, base_url: str
    ) -> str:
        now = datetime.now(timezone.utc)
        expiry = now + timedelta(minutes=15)
        permissions = BlobSasPermissions(read=True)

        credential = getattr(service, "credential", None)

        if isinstance(credential, TokenCredential):
            delegation_key = await asyncio.to_thread(service.get_user_delegation_key, now, expiry)
            sas_token = generate_blob_sas(
                account_name=service.account_name,
                container_name=container_name,
                blob_name=blob_name,
                user_delegation_key=delegation_key,
                permission=permissions,
                expiry=expiry,
            )
        elif credential is not None:
            sas_token = generate_blob_sas(
                account_name=service.account_name,
                container_name=container_name,
                blob_name=blob_name,
                credential=credential,
                permission=permissions,
                expiry=expiry,
            )
        else:
            raise RuntimeError("Azure Blob Storage credential is required for SAS generation")

        separator = "&" if "?" in base_url else "?"
        return f"{base_url}{separator}{sas_token}"
