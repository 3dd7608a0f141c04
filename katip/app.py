# -- app.py (Katip ön muhasebe: sunucu tarafı API) --
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional
import requests
from fastapi import APIRouter, Body, FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict, Field

from katip.config import Settings, load_settings
from katip.einvoice import EInvoiceError, SOAP_ACTIONS, forward
from katip.identity import IdentityRejected, confirm_identity
from katip.logging_config import configure_logging
from katip.registration import DEFAULT_ERROR, RegistrationError, RegistrationRequest, RegistrationSaga
from katip.store import CompanyStore

logger = logging.getLogger(__name__)
bearer=HTTPBearer(auto_error=False)
router=APIRouter()

# ---- Pydantic ----
class RegistrationIn(BaseModel):
    model_config=ConfigDict(populate_by_name=True, str_strip_whitespace=True)
    user_id:str=Field(alias="userId", min_length=1); email:str=Field(min_length=3)
    full_name:Optional[str]=Field(None, alias="fullName")
    company_name:str=Field(alias="companyName", min_length=1); tax_number:Optional[str]=Field(None, alias="taxNumber")
class RegistrationOut(BaseModel): success:bool=True; companyId:str; message:str
class SoapData(BaseModel): envelope:str=""
class SoapProxyIn(BaseModel): action:str; data:SoapData=SoapData()

# ---- Bağımlılıklar ----
def get_settings(request:Request)->Settings: return request.app.state.settings
def get_store(request:Request)->CompanyStore: return request.app.state.store
def get_http(request:Request): return request.app.state.http

async def validation_failed(request:Request, exc:RequestValidationError):
    # {success:false, error} biçimi doğrulama hatalarında da korunur
    fields=sorted({str(e["loc"][-1]) for e in exc.errors() if e.get("loc")})
    return JSONResponse({"success":False, "error":"Eksik veya geçersiz alan: "+", ".join(fields)}, status_code=422)

def create_app(settings:Optional[Settings]=None, store:Optional[CompanyStore]=None, http=None)->FastAPI:
    settings=settings or load_settings()
    if store is None:
        store=CompanyStore.from_url(settings.service_database_url); store.create_all()
    owns_http=http is None
    http=http or requests.Session()

    @asynccontextmanager
    async def lifespan(app:FastAPI):
        yield
        if owns_http: http.close()

    app=FastAPI(title="Katip ERP API (TR, TL)", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=list(settings.cors_origins), allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(RequestValidationError, validation_failed)
    app.state.settings=settings; app.state.store=store; app.state.http=http
    app.include_router(router)
    return app

@router.get("/health")
def health(): return {"status":"ok"}

# --- AUTH ---
@router.post("/api/auth/complete-registration", response_model=RegistrationOut)
def complete_registration(p:RegistrationIn, creds:HTTPAuthorizationCredentials=Depends(bearer),
                          settings:Settings=Depends(get_settings), store:CompanyStore=Depends(get_store)):
    try: confirm_identity(p.user_id, creds.credentials if creds else None, settings)
    except IdentityRejected as e: return JSONResponse({"success":False, "error":e.message}, status_code=e.status_code)
    req=RegistrationRequest(user_id=p.user_id, email=p.email, full_name=p.full_name, company_name=p.company_name, tax_number=p.tax_number)
    try:
        result=RegistrationSaga(store).run(req)
    except RegistrationError as e:
        return JSONResponse({"success":False, "error":e.message}, status_code=500)
    except Exception as e:
        logger.exception("complete-registration failed")
        return JSONResponse({"success":False, "error":str(e) or DEFAULT_ERROR}, status_code=500)
    return RegistrationOut(companyId=result.company_id, message=result.message)

# --- e-Fatura (Uyumsoft) ---
@router.get("/api/uyumsoft")
def uyumsoft_ping(): return {"message":"Uyumsoft API route is working!"}

@router.post("/api/uyumsoft")
def uyumsoft_proxy(p:SoapProxyIn, settings:Settings=Depends(get_settings), http=Depends(get_http)):
    if p.action not in SOAP_ACTIONS: return JSONResponse({"error":"Invalid action"}, status_code=400)
    try:
        r=forward(p.action, p.data.envelope, settings.uyumsoft_endpoint, http=http, timeout=settings.uyumsoft_timeout)
    except (requests.RequestException, EInvoiceError) as e:
        logger.error("uyumsoft proxy failed: %s", e)
        return JSONResponse({"error":str(e) or "Internal server error"}, status_code=500)
    if not r.ok:
        return JSONResponse({"error":"Uyumsoft API error", "status":r.status_code, "response":r.text}, status_code=r.status_code)
    return {"success":True, "response":r.text}

@router.post("/api/soap-test")
def soap_test(data:Any=Body(None)):
    logger.info("SOAP test endpoint called")
    return {"success":True, "message":"SOAP test endpoint works!", "data":data}

def main():
    import uvicorn
    configure_logging()
    settings=load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)

if __name__=="__main__": main()
