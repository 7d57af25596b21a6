"""Team roles and project categories offered when creating a project."""

from __future__ import annotations

DEFAULT_ROLE = "Other"

ROLES: tuple[str, ...] = (
    "Frontend Developer",
    "Backend Developer",
    "Full Stack Developer",
    "UI/UX Designer",
    "WordPress Developer",
    "Mobile App Developer",
    "Shopify Developer",
    "QA Tester",
    "Project Manager",
    "DevOps Engineer",
    "Database Administrator",
    "AI/ML Engineer",
    DEFAULT_ROLE,
)

CATEGORIES: tuple[str, ...] = (
    "Website Development",
    "Frontend Development",
    "Backend Development",
    "Full Stack Development",
    "WordPress Development",
    "Shopify Development",
    "Ecommerce Website Development",
    "Mobile App Development",
    "Android App Development",
    "iOS App Development",
    "React Native Development",
    "Flutter App Development",
    "UI/UX Design",
    "Web App Bug Fixing",
    "API Integration",
    "Custom Software Development",
    "Landing Page Development",
    "Web Maintenance",
    "AI integration Management",
    "Other",
)
