"""
Git Smart-HTTP Router

Mounted at /git. Repositories are addressed as /git/{owner}/{repo} with an
optional .git suffix. Besides the smart protocol the dumb-protocol files
are served for old clients.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Path, Query, Request
from fastapi.responses import FileResponse, Response, StreamingResponse

from pushdeploy.core.git import NO_CACHE_HEADERS, cache_forever_headers, service_from_query
from pushdeploy.db.models.project import Project
from pushdeploy.service.git_service import GitService, read_limited_body

git_router = APIRouter(prefix="/git", tags=["git"])

git_service = GitService()


async def git_project(
    owner: str = Path(..., description="Owner username"),
    repo: str = Path(..., description="Repository name, .git suffix optional"),
    authorization: Optional[str] = Header(None),
) -> Project:
    """Authenticated project of a git request"""
    return await git_service.authenticate(owner, repo, authorization)


@git_router.get("/{owner}/{repo}/info/refs", summary="Ref advertisement")
async def info_refs(
    service: Optional[str] = Query(None),
    git_protocol: Optional[str] = Header(None, alias="Git-Protocol"),
    project: Project = Depends(git_project),
):
    name = service_from_query(service)
    if name is None:
        content = await git_service.info_refs_file(project)
        return Response(content=content, media_type="text/plain; charset=utf-8", headers=NO_CACHE_HEADERS)

    content = await git_service.advertise(project, name, git_protocol)
    return Response(
        content=content,
        media_type=f"application/x-git-{name}-advertisement",
        headers=NO_CACHE_HEADERS,
    )


@git_router.post("/{owner}/{repo}/git-upload-pack", summary="Fetch and clone")
async def upload_pack(
    request: Request,
    git_protocol: Optional[str] = Header(None, alias="Git-Protocol"),
    project: Project = Depends(git_project),
):
    body = await read_limited_body(request)
    stream = await git_service.upload_pack(project, body, request.headers.get("content-encoding"), git_protocol)
    return StreamingResponse(
        stream,
        media_type="application/x-git-upload-pack-result",
        headers=NO_CACHE_HEADERS,
    )


@git_router.post("/{owner}/{repo}/git-receive-pack", summary="Push")
async def receive_pack(
    request: Request,
    git_protocol: Optional[str] = Header(None, alias="Git-Protocol"),
    project: Project = Depends(git_project),
):
    """Apply a push; a push to the default branch queues a build"""
    body = await read_limited_body(request)
    content = await git_service.receive_pack(project, body, request.headers.get("content-encoding"), git_protocol)
    return Response(
        content=content,
        media_type="application/x-git-receive-pack-result",
        headers=NO_CACHE_HEADERS,
    )


@git_router.get("/{owner}/{repo}/HEAD", summary="Default branch")
async def head(project: Project = Depends(git_project)):
    return FileResponse(
        git_service.repository_file(project, "HEAD"),
        media_type="text/plain",
        headers=NO_CACHE_HEADERS,
    )


@git_router.get("/{owner}/{repo}/objects/info/{name}", summary="Object store info files")
async def objects_info(
    name: str = Path(..., pattern=r"^(packs|alternates|http-alternates)$"),
    project: Project = Depends(git_project),
):
    media_type = "text/plain; charset=utf-8" if name == "packs" else "text/plain"
    return FileResponse(
        git_service.repository_file(project, f"objects/info/{name}"),
        media_type=media_type,
        headers=NO_CACHE_HEADERS,
    )


@git_router.get("/{owner}/{repo}/objects/pack/{name}", summary="Pack files")
async def pack_file(
    name: str = Path(..., pattern=r"^pack-[0-9a-f]{40,64}\.(pack|idx)$"),
    project: Project = Depends(git_project),
):
    media_type = "application/x-git-packed-objects" if name.endswith(".pack") else "application/x-git-packed-objects-toc"
    return FileResponse(
        git_service.repository_file(project, f"objects/pack/{name}"),
        media_type=media_type,
        headers=cache_forever_headers(),
    )


@git_router.get("/{owner}/{repo}/objects/{prefix}/{rest}", summary="Loose objects")
async def loose_object(
    prefix: str = Path(..., pattern=r"^[0-9a-f]{2}$"),
    rest: str = Path(..., pattern=r"^[0-9a-f]{38,62}$"),
    project: Project = Depends(git_project),
):
    return FileResponse(
        git_service.repository_file(project, f"objects/{prefix}/{rest}"),
        media_type="application/x-git-loose-object",
        headers=cache_forever_headers(),
    )
