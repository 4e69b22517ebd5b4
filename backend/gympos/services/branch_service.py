from __future__ import annotations

from sqlalchemy import or_

from gympos.extensions import db
from gympos.models import Branch, Company, UserBranch
from gympos.services.concurrency import run_with_retry
from gympos.validation import ConflictError


class BranchError(Exception):
    """Raised when company or branch operations fail."""
    pass


def list_companies() -> list[Company]:
    return db.session.query(Company).order_by(Company.created_at.desc(), Company.id.desc()).all()


def get_company(company_id: int) -> Company | None:
    return db.session.get(Company, company_id)


def create_company(
    *,
    name: str,
    registration_number: str,
    vat_number: str,
    address: str,
) -> Company:
    def _op():
        existing = db.session.query(Company.id).filter(or_(
            Company.registration_number == registration_number,
            Company.vat_number == vat_number,
        )).first()
        if existing:
            raise ConflictError("Registration number or VAT number already exists")

        company = Company(
            name=name,
            registration_number=registration_number,
            vat_number=vat_number,
            address=address,
        )
        db.session.add(company)
        db.session.commit()
        return company

    return run_with_retry(_op)


def list_branches(company_id: int | None = None) -> list[Branch]:
    q = db.session.query(Branch)
    if company_id is not None:
        q = q.filter(Branch.company_id == company_id)
    return q.order_by(Branch.name.asc(), Branch.id.asc()).all()


def list_user_branches(user_id: int) -> list[Branch]:
    return db.session.query(Branch).join(
        UserBranch, UserBranch.branch_id == Branch.id
    ).filter(UserBranch.user_id == user_id).order_by(Branch.name.asc()).all()


def create_branch(
    *,
    company_id: int,
    name: str,
    address: str | None = None,
    phone: str | None = None,
) -> Branch:
    def _op():
        if db.session.get(Company, company_id) is None:
            raise BranchError("Company not found")

        duplicate = db.session.query(Branch.id).filter_by(company_id=company_id, name=name).first()
        if duplicate:
            raise ConflictError("Branch with this name already exists for the company")

        branch = Branch(company_id=company_id, name=name, address=address, phone=phone)
        db.session.add(branch)
        db.session.commit()
        return branch

    return run_with_retry(_op)


def add_user_to_branch(user_id: int, branch_id: int) -> UserBranch:
    link = db.session.query(UserBranch).filter_by(user_id=user_id, branch_id=branch_id).first()
    if link:
        return link
    if db.session.get(Branch, branch_id) is None:
        raise BranchError("Branch not found")

    link = UserBranch(user_id=user_id, branch_id=branch_id)
    db.session.add(link)
    db.session.commit()
    return link
