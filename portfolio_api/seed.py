#!/usr/bin/env python3
"""Load the initial portfolio data through the admin API.

Usage: python -m portfolio_api.seed [API_BASE]
"""

import getpass
import logging
import sys

import httpx
from decouple import config

logger = logging.getLogger(__name__)

PROJECTS = [
    {
        "title": "Bruno Site",
        "description": (
            "Personal portfolio and homelab showcase website built with React, TypeScript, Go, and modern "
            "cloud-native technologies. Features real-time project updates, interactive chatbot, and "
            "comprehensive skill showcase."
        ),
        "short_description": "Portfolio website with an AI chatbot",
        "type": "Portfolio Website",
        "github_url": "https://github.com/brunovlucena/bruno-site",
        "live_url": "https://lucena.cloud",
        "technologies": ["React", "TypeScript", "Go", "PostgreSQL", "Redis", "Docker", "Kubernetes", "Nginx"],
        "featured": True,
        "order": 1,
    },
    {
        "title": "Knative Lambda",
        "description": (
            "Serverless functions and cloud-native development platform using Knative for scalable, "
            "event-driven applications with Kubernetes."
        ),
        "type": "Serverless",
        "github_url": "https://github.com/brunovlucena/knative-lambda",
        "technologies": ["Knative", "Kubernetes", "Serverless", "CloudEvents", "Go"],
        "featured": True,
        "order": 2,
    },
]

SKILLS = [
    ("Kubernetes", "Cloud", 5, "☸️"),
    ("AWS EKS", "Cloud", 5, "☁️"),
    ("GCP", "Cloud", 4, "☁️"),
    ("Prometheus", "Observability", 5, "📊"),
    ("Grafana", "Observability", 5, "📈"),
    ("OpenTelemetry", "Observability", 4, "👁️"),
    ("Terraform", "Infrastructure", 5, "🏗️"),
    ("Pulumi", "Infrastructure", 4, "☁️"),
    ("Go", "Programming", 4, "🐹"),
    ("Python", "Programming", 4, "🐍"),
    ("IT Security", "Security", 5, "🔒"),
    ("Project Management", "Management", 4, "📊"),
]

EXPERIENCES = [
    {
        "title": "Senior Cloud Native Infrastructure Engineer",
        "company": "Notifi",
        "start_date": "2023-01-01",
        "current": True,
        "description": "Kubernetes platform, observability stack and serverless workloads on AWS EKS.",
        "technologies": ["Kubernetes", "AWS EKS", "Knative", "Prometheus", "Grafana", "Terraform"],
        "order": 3,
    },
    {
        "title": "SRE / DevOps Engineer",
        "company": "Mobimeo",
        "start_date": "2021-01-01",
        "end_date": "2022-12-31",
        "description": "Reliability engineering and monitoring for mobility services.",
        "technologies": ["Kubernetes", "GCP", "Prometheus", "Pulumi"],
        "order": 2,
    },
]

ABOUT = {
    "description": (
        "Senior Cloud Native Infrastructure Engineer with experience in Kubernetes, observability "
        "and security."
    ),
    "highlights": [
        {"icon": "☸️", "text": "Kubernetes and cloud-native platforms"},
        {"icon": "📊", "text": "Observability with Prometheus, Grafana, Loki and Tempo"},
        {"icon": "🔒", "text": "IT security and vulnerability assessment"},
    ],
}


def _check(response: httpx.Response, label: str) -> bool:
    if response.status_code in (200, 201):
        logger.info("[Seed] %s: ok", label)
        return True
    logger.error("[Seed] %s failed: %d %s", label, response.status_code, response.text[:200])
    return False


def seed(client: httpx.Client, password: str, prefix: str = "/api/v1") -> int:
    """Log in and create the sample data. Returns the number of failed requests."""
    login = client.post(f"{prefix}/admin/login", json={"password": password})
    if login.status_code != 200:
        raise RuntimeError(f"admin login failed: {login.status_code}")
    client.headers["Authorization"] = f"Bearer {login.json()['token']}"

    failures = 0
    for project in PROJECTS:
        failures += not _check(client.post(f"{prefix}/projects", json=project), f"project {project['title']}")
    for order, (name, category, proficiency, icon) in enumerate(SKILLS, 1):
        skill = {"name": name, "category": category, "proficiency": proficiency, "icon": icon, "order": order}
        failures += not _check(client.post(f"{prefix}/skills", json=skill), f"skill {name}")
    for experience in EXPERIENCES:
        failures += not _check(
            client.post(f"{prefix}/experiences", json=experience), f"experience {experience['company']}"
        )
    failures += not _check(client.put(f"{prefix}/about", json=ABOUT), "about")
    failures += not _check(client.put(f"{prefix}/contact", json={}), "contact")
    return failures


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    api_base = sys.argv[1] if len(sys.argv) > 1 else config("API_BASE", default="http://localhost:8080")
    password = config("ADMIN_PASSWORD", default="") or getpass.getpass("Admin password: ")

    with httpx.Client(base_url=api_base, timeout=30.0) as client:
        failures = seed(client, password)
    if failures:
        logger.error("[Seed] finished with %d failures", failures)
        sys.exit(1)
    logger.info("[Seed] done")


if __name__ == "__main__":
    main()
