from fastapi import Depends, Request
from sqlalchemy.orm import Session
from pricewatch.core.merchant_registry import MerchantRegistry
from pricewatch.models.database import get_db
from pricewatch.services.catalog_service import CatalogQueryService
from pricewatch.services.job_executor import JobExecutor
from pricewatch.services.job_manager import JobManager

def get_job_manager(request: Request) -> JobManager:
    """Get the job manager created at startup"""
    return request.app.state.job_manager

def get_job_executor(request: Request) -> JobExecutor:
    """Get the job executor created at startup"""
    return request.app.state.job_executor

def get_registry(request: Request) -> MerchantRegistry:
    """Get the merchant registry created at startup"""
    return request.app.state.registry

def get_catalog_service(db: Session = Depends(get_db)) -> CatalogQueryService:
    """Get catalog query service instance"""
    return CatalogQueryService(db)
