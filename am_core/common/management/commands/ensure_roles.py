# am_core/common/management/commands/ensure_roles.py
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from am_core.iam.roles import ALL_ROLES


class Command(BaseCommand):
    help = "Create the ADMIN/MANAGER/OPERATOR/AUDITOR groups used for movement permissions."

    def add_arguments(self, parser):
        parser.add_argument(
            "--show-members",
            action="store_true",
            help="Print how many users hold each role afterwards.",
        )

    def handle(self, *args, **options):
        missing = set(ALL_ROLES) - set(Group.objects.filter(name__in=ALL_ROLES).values_list("name", flat=True))
        for name in ALL_ROLES:
            if name in missing:
                Group.objects.create(name=name)

        self.stdout.write(self.style.SUCCESS(f"{len(ALL_ROLES)} roles present, {len(missing)} created."))

        if options["show_members"]:
            for group in Group.objects.filter(name__in=ALL_ROLES).order_by("name"):
                self.stdout.write(f"  {group.name}: {group.user_set.count()} user(s)")
