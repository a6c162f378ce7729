from django.conf import settings
from rest_framework import serializers
from .models import Product, ProductVideo


class ProductVideoSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVideo
        fields = ['id', 'name', 'bio', 'url']


class ProductSerializer(serializers.ModelSerializer):
    """
    Read representation of a product.

    Pass context={'with_videos': False} to leave the `videos` key out entirely;
    the queryset then doesn't need the videos prefetched.
    """
    nameEn = serializers.CharField(source='name_en')
    nameAr = serializers.CharField(source='name_ar')
    costPrice = serializers.DecimalField(source='cost_price', max_digits=10, decimal_places=2, allow_null=True)
    rentPrice = serializers.DecimalField(source='rent_price', max_digits=10, decimal_places=2, allow_null=True)
    sellPrice = serializers.DecimalField(source='sell_price', max_digits=10, decimal_places=2, allow_null=True)
    availableForRent = serializers.BooleanField(source='available_for_rent')
    availableForSale = serializers.BooleanField(source='available_for_sale')
    rentStock = serializers.IntegerField(source='rent_stock')
    saleStock = serializers.IntegerField(source='sale_stock')
    qrCode = serializers.CharField(source='qr_code', allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')
    videos = ProductVideoSerializer(many=True, read_only=True)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if not self.context.get('with_videos', True):
            self.fields.pop('videos')

    class Meta:
        model = Product
        fields = [
            'id', 'nameEn', 'nameAr', 'company', 'category', 'description', 'rate',
            'costPrice', 'rentPrice', 'sellPrice', 'availableForRent', 'availableForSale',
            'rentStock', 'saleStock', 'images', 'qrCode', 'videos', 'createdAt', 'updatedAt'
        ]


class ProductInputSerializer(serializers.Serializer):
    """
    Validates multipart product fields and uploaded files.

    Used as-is for create (names, company, category and description required)
    and with partial=True for edit, where validated_data holds only the keys
    the client actually sent.
    """
    nameEn = serializers.CharField(source='name_en', max_length=200)
    nameAr = serializers.CharField(source='name_ar', max_length=200)
    company = serializers.CharField(max_length=200)
    category = serializers.CharField(max_length=100)
    description = serializers.CharField()
    rate = serializers.FloatField(min_value=0, max_value=5, required=False)
    costPrice = serializers.DecimalField(source='cost_price', max_digits=10, decimal_places=2,
                                         min_value=0, required=False, allow_null=True)
    rentPrice = serializers.DecimalField(source='rent_price', max_digits=10, decimal_places=2,
                                         min_value=0, required=False, allow_null=True)
    sellPrice = serializers.DecimalField(source='sell_price', max_digits=10, decimal_places=2,
                                         min_value=0, required=False, allow_null=True)
    availableForRent = serializers.BooleanField(source='available_for_rent', required=False)
    availableForSale = serializers.BooleanField(source='available_for_sale', required=False)
    rentStock = serializers.IntegerField(source='rent_stock', min_value=0, required=False)
    saleStock = serializers.IntegerField(source='sale_stock', min_value=0, required=False)
    images = serializers.ListField(source='image_files', child=serializers.FileField(),
                                   required=False, write_only=True)
    videos = serializers.ListField(source='video_files', child=serializers.FileField(),
                                   required=False, write_only=True)

    def validate_images(self, value):
        if len(value) > settings.PRODUCT_MAX_IMAGES:
            raise serializers.ValidationError(f'At most {settings.PRODUCT_MAX_IMAGES} images can be uploaded at once.')
        return value

    def validate_videos(self, value):
        if len(value) > settings.PRODUCT_MAX_VIDEOS:
            raise serializers.ValidationError(f'At most {settings.PRODUCT_MAX_VIDEOS} videos can be uploaded at once.')
        return value

    def split_files(self):
        """Return (fields, image_files, video_files) from validated_data"""
        fields = dict(self.validated_data)
        image_files = fields.pop('image_files', [])
        video_files = fields.pop('video_files', [])
        return fields, image_files, video_files
