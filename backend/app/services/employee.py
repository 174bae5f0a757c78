# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class EmployeeInfo(BaseModel):
    """Employee metadata from the Employee Directory."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    role: str = "employee"  # "employee", "manager", "hr" or "admin"
    manager_id: uuid.UUID | None = None
    department_id: uuid.UUID | None = None
    device_tokens: list[str] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@runtime_checkable
class EmployeeService(Protocol):
    """Interface for the Employee Directory."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        ...

    async def list_hr_staff(self, department_id: uuid.UUID | None = None) -> list[EmployeeInfo]:
        """HR roster notified once a manager approves a request."""
        ...

    async def list_employees(self, department_id: uuid.UUID | None = None) -> list[EmployeeInfo]:
        """Every employee, or only the members of one department."""
        ...


class InMemoryEmployeeService:
    """In-memory stub implementation for development."""

    def __init__(self, hr_roles: tuple[str, ...] = ("hr",)) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}
        self._hr_roles = hr_roles

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[employee.id] = employee

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        return self._employees.get(employee_id)

    async def list_hr_staff(self, department_id: uuid.UUID | None = None) -> list[EmployeeInfo]:
        """HR staff of the department, or every HR user when none belong to it."""
        staff = [e for e in self._employees.values() if e.role.lower() in self._hr_roles]
        if department_id is None:
            return staff
        in_department = [e for e in staff if e.department_id == department_id]
        return in_department or staff

    async def list_employees(self, department_id: uuid.UUID | None = None) -> list[EmployeeInfo]:
        employees = [
            e for e in self._employees.values() if department_id is None or e.department_id == department_id
        ]
        return sorted(employees, key=lambda e: (e.last_name, e.first_name))


_employee_service: EmployeeService = InMemoryEmployeeService()


def get_employee_service() -> EmployeeService:
    """FastAPI dependency for the Employee Directory."""
    return _employee_service


def set_employee_service(service: EmployeeService) -> None:
    """Override the service (for testing or production wiring)."""
    global _employee_service
    _employee_service = service
