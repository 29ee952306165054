"""Module-level repository singletons over the process document store."""

from __future__ import annotations

from coursegate.repos.course_repo import CourseRepo
from coursegate.repos.material_repo import MaterialRepo
from coursegate.repos.payment_repo import PaymentRepo
from coursegate.repos.registration_repo import RegistrationRepo
from coursegate.repos.store import document_store
from coursegate.repos.user_repo import UserRepo

course_repo = CourseRepo(document_store)
material_repo = MaterialRepo(document_store)
payment_repo = PaymentRepo(document_store)
registration_repo = RegistrationRepo(document_store)
user_repo = UserRepo(document_store)
