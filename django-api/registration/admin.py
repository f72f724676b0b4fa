from django.contrib import admin

from registration.models import (
    Attendee,
    Booking,
    CalendarBlockout,
    Coupon,
    CouponRedemption,
    PointOfContact,
    ReminderJob,
    ReminderTemplate,
)


class PointOfContactInline(admin.StackedInline):
    model = PointOfContact
    extra = 0


class AttendeeInline(admin.TabularInline):
    model = Attendee
    extra = 0


class ReminderJobInline(admin.TabularInline):
    model = ReminderJob
    extra = 0
    fields = ["kind", "scheduled_for", "status", "attempts", "last_error"]
    readonly_fields = fields


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ["workshop_id", "confirmation_code", "status", "payment_status", "total_amount", "created_at"]
    list_filter = ["status", "payment_status", "product_id"]
    search_fields = ["id", "workshop_id", "confirmation_code", "point_of_contact__email"]
    inlines = [PointOfContactInline, AttendeeInline, ReminderJobInline]


class CouponRedemptionInline(admin.TabularInline):
    model = CouponRedemption
    extra = 0
    readonly_fields = ["booking_id", "discount_amount", "redeemed_at"]


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ["code", "discount_type", "value", "usage_count", "usage_limit", "is_active", "expires_at"]
    list_filter = ["discount_type", "is_active"]
    search_fields = ["code", "description"]
    inlines = [CouponRedemptionInline]


@admin.register(CalendarBlockout)
class CalendarBlockoutAdmin(admin.ModelAdmin):
    list_display = ["start_date", "end_date", "reason", "external_event_id"]


@admin.register(ReminderJob)
class ReminderJobAdmin(admin.ModelAdmin):
    list_display = ["kind", "recipient_email", "scheduled_for", "status", "attempts", "sent_at"]
    list_filter = ["status", "kind"]
    search_fields = ["recipient_email", "workshop_id", "booking__id"]


@admin.register(ReminderTemplate)
class ReminderTemplateAdmin(admin.ModelAdmin):
    list_display = ["kind", "subject", "is_active", "updated_at"]
