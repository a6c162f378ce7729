from django.contrib import admin
from django.utils.html import format_html
from .models import Product, ProductVideo


class ProductVideoInline(admin.TabularInline):
    model = ProductVideo
    extra = 0
    fields = ['name', 'bio', 'url', 'created_at']
    readonly_fields = ['created_at']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name_en', 'name_ar', 'company', 'category', 'sale_stock', 'rent_stock', 'has_qr_code', 'created_at']
    list_filter = ['category', 'available_for_sale', 'available_for_rent', 'created_at']
    search_fields = ['name_en', 'name_ar', 'company', 'description']
    ordering = ['-created_at']
    readonly_fields = ['qr_code', 'qr_code_preview', 'created_at', 'updated_at']
    inlines = [ProductVideoInline]
    actions = ['regenerate_qr_codes']

    def has_qr_code(self, obj):
        return bool(obj.qr_code)
    has_qr_code.boolean = True
    has_qr_code.short_description = 'QR'

    def qr_code_preview(self, obj):
        if not obj.qr_code:
            return '-'
        return format_html('<img src="{}" style="max-width: 160px;" />', obj.qr_code)
    qr_code_preview.short_description = 'QR Code'

    @admin.action(description='Regenerate QR codes for selected products')
    def regenerate_qr_codes(self, request, queryset):
        from .services import regenerate_qr_code
        done = 0
        for product in queryset:
            try:
                regenerate_qr_code(product.id)
                done += 1
            except Exception as e:
                self.message_user(request, f'Failed for {product.name_en}: {str(e)}', level='error')
        self.message_user(request, f'Regenerated {done} QR code(s).')


@admin.register(ProductVideo)
class ProductVideoAdmin(admin.ModelAdmin):
    list_display = ['name', 'product', 'url', 'created_at']
    search_fields = ['name', 'product__name_en']
    ordering = ['-created_at']
