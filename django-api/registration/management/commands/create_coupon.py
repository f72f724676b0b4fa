from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from registration.container import get_container
from registration.domain import DiscountType, Money
from registration.domain.errors import ValidationError


class Command(BaseCommand):
    help = "Create a discount code, e.g. create_coupon ADMIN100OFF 100 --usage-limit 5 --expires-in-days 180"

    def add_arguments(self, parser):
        parser.add_argument("code")
        parser.add_argument("value", type=Decimal)
        parser.add_argument(
            "--type",
            dest="discount_type",
            choices=[member.value for member in DiscountType],
            default=DiscountType.PERCENTAGE.value,
        )
        parser.add_argument("--usage-limit", type=int, default=None)
        parser.add_argument("--expires-in-days", type=int, default=None)
        parser.add_argument("--minimum-amount", type=Decimal, default=None)
        parser.add_argument("--description", default="")

    def handle(self, *args, **options):
        expires_in = options["expires_in_days"]
        minimum = options["minimum_amount"]
        try:
            coupon = get_container().coupons.create_coupon(
                options["code"],
                options["discount_type"],
                options["value"],
                usage_limit=options["usage_limit"],
                expires_at=timezone.now() + timedelta(days=expires_in) if expires_in else None,
                minimum_amount=Money(minimum) if minimum is not None else None,
                description=options["description"],
            )
        except ValidationError as e:
            raise CommandError(e.message) from e

        limit = coupon.usage_limit if coupon.usage_limit is not None else "unlimited"
        self.stdout.write(
            self.style.SUCCESS(f"Created {coupon.code}: {coupon.value} {coupon.discount_type.value}, {limit} uses")
        )
