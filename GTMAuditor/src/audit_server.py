#!/usr/bin/env python3
"""
HTTP surface for the GTM auditor

POST /api/audit        {"url": "..."}                 -> AuditResult
POST /api/audit/batch  {"urls": [...]} or {"text": ...} -> results + summary
GET  /api/health
"""

import argparse
from typing import Any, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from audit_errors import InvalidUrlError
from audit_models import AuditResult
from batch_auditor import BatchAuditor, http_status_for, parse_url_input
from config import get_settings
from main import build_auditor

app = FastAPI(
    title="gtm-auditor",
    version="0.1.0",
    description="Google Tag Manager performance audits with Lighthouse",
)

_auditor: Optional[BatchAuditor] = None


def get_auditor() -> BatchAuditor:
    global _auditor
    if _auditor is None:
        _auditor = build_auditor(get_settings())
    return _auditor


def set_auditor(auditor: Optional[BatchAuditor]) -> None:
    """Replace the process-wide auditor (None resets to settings-built)"""
    global _auditor
    _auditor = auditor


class AuditRequest(BaseModel):
    url: Any = None


class BatchAuditRequest(BaseModel):
    urls: List[str] = []
    text: Optional[str] = None


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}


@app.post("/api/audit")
async def audit(req: AuditRequest):
    if not req.url or not isinstance(req.url, str):
        raise HTTPException(status_code=400, detail="URL is required and must be a string")

    try:
        result = await get_auditor().audit_url(req.url)
    except InvalidUrlError as e:
        return JSONResponse(AuditResult.failure(req.url, str(e)).to_dict(), status_code=400)

    return JSONResponse(result.to_dict(), status_code=http_status_for(result))


@app.post("/api/audit/batch")
async def audit_batch(req: BatchAuditRequest):
    candidates = list(req.urls) + parse_url_input(req.text or "")
    if not candidates:
        raise HTTPException(status_code=400, detail="At least one URL is required")

    report = await get_auditor().audit_batch(candidates)
    return report.to_dict()


def main():
    parser = argparse.ArgumentParser(description="GTM auditor HTTP server")
    parser.add_argument("--port", type=int, default=3000, help="Port to listen on")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    args = parser.parse_args()

    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
