"""
Utility functions for rendering console reports.

This module provides functions to:
- Format byte sizes for humans
- Render image and container listings as tables
- Render the stubborn-image diagnosis and the reconciliation summary
"""
from typing import Any, Dict, List

from tabulate import tabulate

from utils.inventory import ImageResource, short_id


# ============================================================================
# Formatting Utilities
# ============================================================================

def sizeof_fmt(num: float, suffix: str = "B") -> str:
    """Format bytes into human-readable size.

    Args:
        num: Number of bytes
        suffix: Suffix to append (default: "B")

    Returns:
        Formatted string like "1.5GiB", "500MiB", etc.
    """
    for unit in ("", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi"):
        if abs(num) < 1024.0:
            return f"{num:3.1f}{unit}{suffix}"
        num /= 1024.0
    return f"{num:.1f}Yi{suffix}"


def _created_date(created: str) -> str:
    # Engine timestamps look like 2024-05-01T12:34:56.789012345Z
    return created.replace("T", " ")[:19] if created else "-"


# ============================================================================
# Listings
# ============================================================================

def format_image_rows(rows: List[Dict[str, Any]]) -> str:
    """Render `docker images` rows as a table."""
    if not rows:
        return "No images found"
    table = [
        [row.get("Repository", ""), row.get("Tag", ""), short_id(row.get("ID", "")), row.get("CreatedSince", ""), row.get("Size", "")]
        for row in rows
    ]
    return tabulate(table, headers=["REPOSITORY", "TAG", "IMAGE ID", "CREATED", "SIZE"], tablefmt="simple")


def format_images_table(images: List[ImageResource]) -> str:
    """Render inventory images (e.g. the dangling candidates) as a table."""
    if not images:
        return "No images found"
    table = [
        [image.short_id, ", ".join(image.tags) or "<none>", _created_date(image.created), sizeof_fmt(image.size)]
        for image in images
    ]
    return tabulate(table, headers=["IMAGE ID", "TAGS", "CREATED", "SIZE"], tablefmt="simple")


def format_container_rows(rows: List[Dict[str, Any]]) -> str:
    """Render `docker ps` rows as a table."""
    if not rows:
        return "No containers found"
    table = [
        [short_id(row.get("ID", "")), row.get("Image", ""), row.get("Status", ""), row.get("Names", "")]
        for row in rows
    ]
    return tabulate(table, headers=["CONTAINER ID", "IMAGE", "STATUS", "NAMES"], tablefmt="simple")


# ============================================================================
# Reconciliation
# ============================================================================

def format_diagnosis_table(diagnoses: List[Any]) -> str:
    """Render why each stubborn image resisted deletion."""
    table = []
    for diagnosis in diagnoses:
        image = diagnosis.image
        table.append([
            short_id(diagnosis.image_id),
            _created_date(image.created) if image else "-",
            sizeof_fmt(image.size) if image else "-",
            ", ".join(cause.value for cause in diagnosis.causes),
            diagnosis.describe(),
        ])
    return tabulate(table, headers=["IMAGE ID", "CREATED", "SIZE", "CAUSE", "DETAILS"], tablefmt="grid")


def format_reconciliation_summary(report: Any) -> str:
    """Render the terminal summary: counts plus the causes of every kept image."""
    lines = [
        "",
        "📊 Deletion Summary:",
        f"   Total images: {len(report.batch)}",
        f"   Successfully deleted: {report.deleted_count}",
        f"   Kept: {report.kept_count}",
    ]
    if report.containers_removed:
        lines.append(f"   Containers removed: {len(report.containers_removed)}")
    if report.containers_failed:
        lines.append(f"   Containers that could not be removed: {len(report.containers_failed)}")

    kept_causes = report.kept_causes()
    if kept_causes:
        rows = []
        for image_id, causes in kept_causes.items():
            diagnosis = report.diagnoses.get(image_id)
            rows.append([
                short_id(image_id),
                ", ".join(cause.value for cause in causes),
                diagnosis.describe() if diagnosis else "",
            ])
        lines.append("")
        lines.append(tabulate(rows, headers=["KEPT IMAGE", "CAUSE", "DETAILS"], tablefmt="grid"))
    return "\n".join(lines)
