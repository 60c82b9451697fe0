"""GitHub Releases client, sequential PDF uploader and deploy workflow."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

import httpx

from litreview.errors import CatalogError, NetworkError, PreconditionFailed
from litreview.services.export_service import (
    DEFAULT_CDN_BASE,
    ExportBundle,
    PdfAsset,
    ReleaseInfo,
    cdn_url,
)

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GITHUB_UPLOADS_BASE = "https://uploads.github.com"
TIMEOUT = 60.0
UPLOAD_DELAY = 0.5

ProgressCallback = Callable[[dict[str, Any]], None]

__all__ = [
    "DeployOutcome",
    "GitHubReleasesClient",
    "Release",
    "ReleaseUploader",
    "UploadOutcome",
    "cdn_url",
]


@dataclass
class Release:
    id: int
    tag: str
    name: str
    html_url: str


@dataclass
class UploadOutcome:
    """Result of uploading one asset; failures carry ``error``."""

    success: bool
    file_name: str
    paper_id: str
    download_url: Optional[str] = None
    cdn_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DeployOutcome:
    release: Release
    upload_results: list[UploadOutcome]
    bundle: ExportBundle
    cdn_base_url: str
    instructions: dict[str, Any] = field(default_factory=dict)

    @property
    def successful(self) -> list[UploadOutcome]:
        return [r for r in self.upload_results if r.success]

    @property
    def failed(self) -> list[UploadOutcome]:
        return [r for r in self.upload_results if not r.success]


class GitHubReleasesClient:
    """Minimal async client for the two release endpoints this tool uses."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        api_base: str = GITHUB_API_BASE,
        uploads_base: str = GITHUB_UPLOADS_BASE,
    ):
        """Initialize release client.

        Args:
            owner: Repository owner (user or organization)
            repo: Repository name
            token: Personal access token; required for every request
            client: Shared httpx client (a short-lived one is opened per
                request when omitted)
        """
        self.owner = owner
        self.repo = repo
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.uploads_base = uploads_base.rstrip("/")
        self._client = client

    def validate_config(self) -> dict[str, Any]:
        issues = []
        if not self.owner:
            issues.append("Repository owner is required")
        if not self.repo:
            issues.append("Repository name is required")
        if not self.token:
            issues.append("GitHub token is required")
        return {"valid": not issues, "issues": issues}

    def _headers(self, content_type: str) -> dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "Content-Type": content_type,
            "Accept": "application/vnd.github.v3+json",
        }

    def _require_token(self, action: str) -> None:
        if not self.token:
            raise PreconditionFailed(f"GitHub token is required for {action}")

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=TIMEOUT) as client:
                yield client

    async def create_release(self, info: ReleaseInfo) -> Release:
        """Create a release.

        Raises:
            PreconditionFailed: If no token is configured (nothing is sent)
            NetworkError: On transport failure, a non-2xx response or a malformed body
        """
        self._require_token("creating releases")
        url = f"{self.api_base}/repos/{self.owner}/{self.repo}/releases"
        data = await self._post(url, self._headers("application/json"), json=info.to_payload())
        try:
            release_id = data["id"]
        except KeyError as e:
            raise NetworkError("GitHub response for the new release has no id") from e
        return Release(
            id=release_id,
            tag=data.get("tag_name", info.tag),
            name=data.get("name", info.name),
            html_url=data.get("html_url", ""),
        )

    async def upload_asset(self, release_id: int, file_name: str, data: bytes) -> dict[str, Any]:
        """Upload one binary as a release asset and return the asset JSON."""
        self._require_token("uploading assets")
        url = f"{self.uploads_base}/repos/{self.owner}/{self.repo}/releases/{release_id}/assets"
        return await self._post(
            url,
            self._headers("application/octet-stream"),
            params={"name": file_name},
            content=data,
        )

    async def _post(self, url: str, headers: dict[str, str], **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._session() as client:
                response = await client.post(url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        if response.is_error:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise NetworkError(
                f"GitHub returned {response.status_code}: {message}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(
                f"GitHub returned a non-JSON body ({response.status_code}) for {url}",
                status=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise NetworkError(
                f"GitHub returned an unexpected body ({response.status_code}) for {url}",
                status=response.status_code,
            )
        return data


class ReleaseUploader:
    """Uploads PDF assets one at a time and finishes a hosted deploy."""

    def __init__(
        self,
        client: GitHubReleasesClient,
        cdn_base: str = DEFAULT_CDN_BASE,
        delay: float = UPLOAD_DELAY,
    ):
        self.client = client
        self.cdn_base = cdn_base
        self.delay = delay

    def cdn_base_url(self, tag: str) -> str:
        return f"{self.cdn_base.rstrip('/')}/{self.client.owner}/{self.client.repo}@{tag}/"

    async def upload_assets(
        self,
        release_id: int,
        assets: list[PdfAsset],
        on_progress: Optional[ProgressCallback] = None,
        tag: str = "latest",
    ) -> list[UploadOutcome]:
        """Upload *assets* strictly in order with a fixed pause after each.

        A failed upload is recorded and the loop moves on.

        Returns:
            One outcome per asset, in input order
        """
        results: list[UploadOutcome] = []
        total = len(assets)

        for index, asset in enumerate(assets, start=1):
            name = asset.standard_file_name
            logger.info("Uploading %s (%d/%d)", name, index, total)
            try:
                response = await self.client.upload_asset(release_id, name, asset.data)
                outcome = UploadOutcome(
                    success=True,
                    file_name=name,
                    paper_id=asset.paper_id,
                    download_url=response.get("browser_download_url"),
                    cdn_url=cdn_url(self.cdn_base, self.client.owner, self.client.repo, tag, asset.paper_id),
                )
                progress = {"current": index, "total": total, "file_name": name, "status": "uploaded"}
            except CatalogError as e:
                logger.warning("Failed to upload %s: %s", name, e)
                outcome = UploadOutcome(
                    success=False,
                    file_name=name,
                    paper_id=asset.paper_id,
                    error=str(e),
                )
                progress = {
                    "current": index,
                    "total": total,
                    "file_name": name,
                    "status": "error",
                    "error": str(e),
                }

            results.append(outcome)
            if on_progress:
                on_progress(progress)
            await asyncio.sleep(self.delay)

        return results

    async def deploy(
        self,
        bundle: ExportBundle,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DeployOutcome:
        """Create the release, upload every PDF and point papers at the CDN.

        The given bundle is left untouched; the outcome carries an updated
        copy in which only successfully uploaded papers were rewritten.

        Raises:
            PreconditionFailed: Without a token, before any request
            NetworkError: If the release itself cannot be created
        """
        if on_progress:
            on_progress({"step": "creating_release", "message": "Creating GitHub release..."})
        release = await self.client.create_release(bundle.release_info)
        logger.info("Created release %s (%s)", release.name, release.tag)

        results: list[UploadOutcome] = []
        if bundle.pdf_assets:
            if on_progress:
                on_progress({
                    "step": "uploading_pdfs",
                    "message": f"Uploading {len(bundle.pdf_assets)} PDF files...",
                })

            def forward(progress: dict[str, Any]) -> None:
                if on_progress:
                    on_progress({"step": "uploading_pdfs", **progress})

            results = await self.upload_assets(release.id, bundle.pdf_assets, forward, tag=release.tag)

        updated = self.update_cdn_urls(bundle, results)
        base_url = self.cdn_base_url(release.tag)
        return DeployOutcome(
            release=release,
            upload_results=results,
            bundle=updated,
            cdn_base_url=base_url,
            instructions=self.deployment_instructions(release, results, updated),
        )

    @staticmethod
    def update_cdn_urls(bundle: ExportBundle, results: list[UploadOutcome]) -> ExportBundle:
        """Return a copy whose uploaded papers point at their CDN URL."""
        updated = bundle.copy()
        uploaded = {r.paper_id: r.cdn_url for r in results if r.success}
        for record in updated.paper_files().values():
            url = uploaded.get(record.get("id"))
            if url:
                record["pdfUrl"] = url
                record.pop("pdfBase64", None)
        return updated

    def deployment_instructions(
        self,
        release: Release,
        results: list[UploadOutcome],
        bundle: ExportBundle,
    ) -> dict[str, Any]:
        successful = [r for r in results if r.success]
        failed = [r for r in results if not r.success]
        base_url = self.cdn_base_url(release.tag)

        next_steps = [
            "Release created successfully",
            f"Uploaded {len(successful)}/{len(results)} PDF files",
            "Next steps:",
            "1. Update your repository with the JSON files:",
            *[f"   - {path}" for path in bundle.json_files],
            "2. Your PDFs are now available via jsDelivr CDN",
            f"   Base URL: {base_url}",
            "3. Test a few CDN links to ensure they work:",
            *[f"   - {r.cdn_url}" for r in successful[:3]],
        ]
        if failed:
            next_steps.append("Failed uploads (retry manually):")
            next_steps.extend(f"   - {r.file_name}: {r.error}" for r in failed)

        return {
            "release_url": release.html_url,
            "cdn_base_url": base_url,
            "summary": {
                "total_pdfs": len(results),
                "successful_uploads": len(successful),
                "failed_uploads": len(failed),
                "json_files": len(bundle.json_files),
            },
            "next_steps": next_steps,
            "failed_uploads": failed,
        }
