import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from pydantic import BaseModel

from .auth import AuthService, require_auth
from .errors import InvalidFile, NotFound, ValidationError, backend_errors
from .sections import is_valid_section
from .uploads import validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# --- Pydantic payloads ---
class LoginPayload(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class ContactPayload(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


def client_address(request: Request) -> str:
    if request.app.state.settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# --- Content ---
@router.get("/content")
async def list_content_sections(request: Request):
    store = request.app.state.section_store
    with backend_errors("Failed to list content sections", "list sections"):
        sections = await store.list_sections()
    return {"sections": sections}


@router.get("/content/{section}")
async def get_content(section: str, request: Request):
    if not is_valid_section(section):
        raise NotFound("Section not found")
    store = request.app.state.section_store
    with backend_errors("Failed to fetch content", "get section", section=section):
        return await store.get_section(section)


@router.post("/content/{section}", dependencies=[Depends(require_auth)])
async def update_content(section: str, request: Request):
    if not is_valid_section(section):
        raise NotFound("Section not found")
    try:
        payload = await request.json()
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Invalid payload. Expected a JSON object.")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload. Expected a JSON object.")

    store = request.app.state.section_store
    with backend_errors("Failed to update content", "put section", section=section):
        await store.put_section(section, payload)
    logger.info("Section %s updated", section)
    return {"success": True, "message": f"{section} content updated successfully"}


# --- Admin auth ---
@router.post("/admin/login")
async def login(payload: LoginPayload, request: Request, response: Response):
    request.app.state.login_limiter.hit(client_address(request))
    if not payload.username or not payload.password:
        raise ValidationError("Username and password are required")

    auth: AuthService = request.app.state.auth
    with backend_errors("Login failed", "login"):
        sid = await auth.login(
            payload.username,
            payload.password,
            previous_sid=request.cookies.get(auth.cookie_name),
        )
    auth.set_cookie(response, sid)
    return {"success": True}


@router.post("/admin/logout")
async def logout(request: Request, response: Response):
    auth: AuthService = request.app.state.auth
    with backend_errors("Logout failed", "logout"):
        await auth.logout(request.cookies.get(auth.cookie_name))
    auth.clear_cookie(response)
    return {"success": True}


@router.get("/admin/status")
async def admin_status(request: Request):
    auth: AuthService = request.app.state.auth
    return await auth.status(request.cookies.get(auth.cookie_name))


# --- Uploads ---
@router.post("/upload", dependencies=[Depends(require_auth)])
async def upload_image(request: Request, image: Optional[UploadFile] = File(None)):
    if image is None:
        raise InvalidFile()
    settings = request.app.state.settings
    incoming = await validate_upload_file(image, settings.upload_max_bytes)

    storage = request.app.state.asset_storage
    with backend_errors("Error uploading file", "save upload", strategy=storage.strategy.value):
        file_path = await storage.save(incoming)
    return {"success": True, "filePath": file_path, "message": "File uploaded successfully!"}


@router.post("/upload/multiple", dependencies=[Depends(require_auth)])
async def upload_images(request: Request, images: Optional[List[UploadFile]] = File(None)):
    if not images:
        raise InvalidFile("No files uploaded or invalid file types")
    settings = request.app.state.settings
    if len(images) > settings.upload_max_files:
        raise InvalidFile(f"At most {settings.upload_max_files} files can be uploaded at once")
    # every file is checked before anything is written
    incoming = [await validate_upload_file(image, settings.upload_max_bytes) for image in images]

    storage = request.app.state.asset_storage
    with backend_errors("Error uploading files", "save uploads", strategy=storage.strategy.value, count=len(incoming)):
        file_paths = await storage.save_many(incoming)
    return {"success": True, "filePaths": file_paths, "message": "Files uploaded successfully!"}


async def validate_upload_file(image: UploadFile, max_bytes: int):
    try:
        return await validate_upload(image, max_bytes)
    finally:
        await image.close()


@router.get("/uploads/{ref}")
async def get_upload(ref: str, request: Request):
    storage = request.app.state.asset_storage
    with backend_errors("Error reading file", "resolve upload", ref=ref):
        asset = await storage.resolve(ref)
    if asset.redirect_url:
        return RedirectResponse(asset.redirect_url)
    if asset.path is not None:
        return FileResponse(asset.path)
    return Response(content=asset.data, media_type=asset.mime_type)


@router.get("/debug/uploads", dependencies=[Depends(require_auth)])
async def debug_uploads(request: Request):
    storage = request.app.state.asset_storage
    with backend_errors("Error listing uploaded files", "list uploads", strategy=storage.strategy.value):
        assets = await storage.list_assets()
    return {
        "strategy": storage.strategy.value,
        "count": len(assets),
        "files": [
            {
                "name": a.filename,
                "path": a.reference,
                "size": a.size,
                "mimeType": a.mime_type,
                "created": a.created_at.isoformat() if a.created_at else None,
            }
            for a in assets
        ],
    }


# --- Site ---
@router.get("/download-resume")
async def download_resume(request: Request):
    settings = request.app.state.settings
    if not settings.resume_path.is_file():
        raise NotFound("Resume file not found")
    return FileResponse(
        settings.resume_path,
        media_type="application/pdf",
        filename=settings.resume_download_name,
    )


@router.post("/contact")
async def contact(payload: ContactPayload, request: Request):
    request.app.state.contact_limiter.hit(client_address(request))
    if not all(v and v.strip() for v in (payload.name, payload.email, payload.message)):
        raise ValidationError("Please provide name, email, and message")
    logger.info("Contact form submission received (%d characters)", len(payload.message.strip()))
    return {"message": "Message received successfully"}


@router.get("/health")
async def health(request: Request):
    state = request.app.state
    return {
        "status": "ok",
        "contentStore": state.section_store.kind,
        "uploadStrategy": state.asset_storage.strategy.value,
        "sessionStore": state.auth.store.kind,
    }
