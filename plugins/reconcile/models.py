"""
Records of the reconciliation pipeline.
"""

from typing import Dict, Optional

from core.models import CamelModel


class SearchFilters(CamelModel):
    """Site 1 search form; ``from_date``/``to_date`` are mandatory."""
    from_date: str
    to_date: str
    application_no: Optional[str] = None
    presale_no: Optional[str] = None
    emirates_id: Optional[str] = None
    traffic_no: Optional[str] = None
    chassis_no: Optional[str] = None
    status: Optional[str] = None


class Site1Row(CamelModel):
    application_time: str = ""
    application_no: str = ""
    presale_no: str = ""
    seller_emirates_id: str = ""
    seller_traffic_file_number: str = ""
    seller_name: str = ""
    buyer_emirates_id: str = ""
    buyer_traffic_file_number: str = ""
    buyer_name: str = ""
    chassis_no: str = ""
    vehicle_make: str = ""
    vehicle_model: str = ""
    manufacture_year: str = ""
    with_plates: str = ""
    with_renewal: str = ""
    sale_amount: str = ""
    site1_status: str = ""
    application_id: Optional[str] = None


class Site2Result(CamelModel):
    application_id: str = ""
    site2_status: str = ""
    raw: Optional[Dict[str, str]] = None
    not_found: Optional[bool] = None


class Summary(CamelModel):
    application_id: Optional[str] = None
    application_no: str = ""
    presale_no: str = ""
    chassis_no: str = ""
    site1_status: str = ""
    site1_time: str = ""
    site2_status: Optional[str] = None
    delta: str = "unknown"  # changed, not changed, unknown
    action: str = ""
    summary_text: str = ""
