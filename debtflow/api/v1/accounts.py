"""Customers, templates and reminder settings - the inputs the engine reads"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from debtflow.api.v1.schemas import (
    CustomerCreate,
    CustomerOut,
    ReminderSettingsIn,
    ReminderSettingsOut,
    TemplateCreate,
    TemplateOut,
)
from debtflow.domain.models import ReminderSettings
from debtflow.domain.exceptions import NoTemplateConfigured
from debtflow.infrastructure.database.session import get_db
from debtflow.infrastructure.database.repositories import (
    CustomerRepository,
    SettingsRepository,
    TemplateRepository,
    UserRepository,
)

router = APIRouter()


@router.post("/customers", response_model=CustomerOut, status_code=201)
def create_customer(body: CustomerCreate, db: Session = Depends(get_db)):
    UserRepository(db).get(body.user_id)
    customer = CustomerRepository(db).create(
        user_id=body.user_id,
        name=body.name,
        email=body.email,
        phone=body.phone,
        notes=body.notes,
    )
    db.commit()
    return CustomerOut.model_validate(customer)


@router.post("/templates", response_model=TemplateOut, status_code=201)
def create_template(body: TemplateCreate, db: Session = Depends(get_db)):
    """
    Create a message template.

    A template created with is_default=true becomes the only default for its
    channel.
    """
    UserRepository(db).get(body.user_id)
    template = TemplateRepository(db).create(
        user_id=body.user_id,
        channel=body.channel,
        body=body.body,
        name=body.name,
        subject=body.subject,
        is_default=body.is_default,
    )
    db.commit()
    return TemplateOut.model_validate(template)


@router.put("/settings/reminders", response_model=ReminderSettingsOut)
def save_reminder_settings(body: ReminderSettingsIn, db: Session = Depends(get_db)):
    UserRepository(db).get(body.user_id)
    if body.default_template_id is not None:
        owned = {t.id for t in TemplateRepository(db).list_for_user(body.user_id, body.default_channel)}
        if body.default_template_id not in owned:
            raise NoTemplateConfigured(
                f"Template {body.default_template_id} is not a {body.default_channel.value} template of this user"
            )

    repo = SettingsRepository(db)
    repo.save(
        body.user_id,
        ReminderSettings(
            enabled=body.enabled,
            reminder_days=body.reminder_days,
            default_channel=body.default_channel,
            default_template_id=body.default_template_id,
        ),
    )
    db.commit()

    saved = repo.get(body.user_id)
    return ReminderSettingsOut(
        user_id=body.user_id,
        enabled=saved.enabled,
        reminder_days=saved.reminder_days,
        default_channel=saved.default_channel,
        default_template_id=saved.default_template_id,
    )
