"""Django admin configuration for projects app."""

from django.contrib import admin

from server.apps.projects.models import Project, ProjectMember


class ProjectMemberInline(admin.TabularInline):  # type: ignore[type-arg]
    """Inline editor for project memberships."""

    model = ProjectMember
    extra = 0
    readonly_fields = ['joined_at']


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin[Project]):
    """Admin interface for Project model."""

    list_display = [
        'name',
        'created_at',
    ]

    search_fields = [
        'name',
    ]

    readonly_fields = ['created_at', 'updated_at']

    inlines = [ProjectMemberInline]
