from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from koperasi.core.permissions import Permission, require
from koperasi.utils.database import get_db
from koperasi.models.system_settings_model import SystemSetting
from koperasi.schemas.settings_schema import SettingPatch, SettingCreate, SettingOut

router = APIRouter(
    prefix="/settings",
    tags=["Settings"],
    dependencies=[Depends(require(Permission.MANAGE_SETTINGS))],
)

# settings the loan flow parses as non-negative decimals
DECIMAL_KEYS = {"OVERPAYMENT_TOLERANCE"}


def check_value(key: str, value: str) -> None:
    if key not in DECIMAL_KEYS:
        return
    try:
        ok = Decimal(value) >= 0
    except InvalidOperation:
        ok = False
    if not ok:
        raise HTTPException(400, f"{key} must be a non-negative number")


@router.get("", response_model=list[SettingOut])
def list_settings(db: Session = Depends(get_db)):
    return db.query(SystemSetting).order_by(SystemSetting.key.asc()).all()


@router.post("", response_model=SettingOut, status_code=status.HTTP_201_CREATED)
def create_setting(payload: SettingCreate, db: Session = Depends(get_db)):
    # 1) Prevent duplicate key
    existing = db.query(SystemSetting).filter(SystemSetting.key == payload.key).first()
    if existing:
        raise HTTPException(status_code=409, detail="Setting key already exists")

    check_value(payload.key, payload.value)

    # 2) Create new setting
    obj = SystemSetting(
        key=payload.key,
        value=payload.value,
        description=(payload.description or "").strip(),
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@router.patch("", response_model=SettingOut)
def update_setting(payload: SettingPatch, db: Session = Depends(get_db)):
    obj = db.query(SystemSetting).filter(SystemSetting.key == payload.key).first()
    if not obj:
        raise HTTPException(404, "Setting not found")

    check_value(payload.key, payload.value)

    obj.value = payload.value
    db.commit()
    db.refresh(obj)
    return obj
