from fastapi import APIRouter

from pleeno.modules.activity.router import router as activity_router
from pleeno.modules.agencies.router import router as agencies_router
from pleeno.modules.auth.router import router as auth_router
from pleeno.modules.colleges.router import branches_router
from pleeno.modules.colleges.router import router as colleges_router
from pleeno.modules.dashboard.router import router as dashboard_router
from pleeno.modules.enrollments.router import router as enrollments_router
from pleeno.modules.payments.router import installments_router
from pleeno.modules.payments.router import router as payment_plans_router
from pleeno.modules.reports.router import router as reports_router
from pleeno.modules.students.router import router as students_router
from pleeno.modules.users.router import router as users_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])
api_router.include_router(agencies_router, prefix="/agencies", tags=["Agencies"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])

api_router.include_router(colleges_router, prefix="/colleges", tags=["Colleges"])
api_router.include_router(branches_router, prefix="/branches", tags=["Colleges"])
api_router.include_router(students_router, prefix="/students", tags=["Students"])
api_router.include_router(enrollments_router, prefix="/enrollments", tags=["Enrollments"])

api_router.include_router(payment_plans_router, prefix="/payment-plans", tags=["Payment Plans"])
api_router.include_router(installments_router, prefix="/installments", tags=["Payment Plans"])

api_router.include_router(activity_router, prefix="/activity-log", tags=["Activity"])
api_router.include_router(reports_router, prefix="/reports", tags=["Reports"])
api_router.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])
