import logging
import os
import sys
from urllib.parse import unquote_plus

# Add the storage_backends module to the path
sys.path.append('/opt/python')
sys.path.append('.')

from storage_backends.factory import get_storage_backend
from image_transform import ImageSettings, ImageTransform

logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))


def build_resized_key(key: str, settings: ImageSettings) -> str:
    return f"{key}{settings.output_suffix}"


def handler(event, context):
    """
    Optimises images as they are uploaded to S3.

    - Downloads the new object
    - Rotates it upright from its EXIF orientation and resizes it to MAX_WIDTH
    - Uploads the JPEG next to the original as <key>.optimised.jpg

    Failures are logged and re-raised so the Lambda runtime can retry the event.
    """
    records = event.get('Records') or []
    if not records:
        logger.warning("Received event without S3 records")
        return {
            'statusCode': 400,
            'body': {
                'error': 'Missing required S3 event records'
            }
        }

    try:
        new_object = records[0]['s3']
        bucket_name = new_object['bucket']['name']
        image_key = unquote_plus(new_object['object']['key'])
    except (KeyError, TypeError):
        logger.exception("Malformed S3 event record")
        raise

    try:
        settings = ImageSettings.from_env()
    except ValueError:
        logger.exception(f"Invalid image settings, not processing object {image_key} from bucket {bucket_name}")
        raise

    # Our own output lands in the same bucket and fires the notification again
    if image_key.endswith(settings.output_suffix):
        logger.info(f"Skipping already optimised image {image_key}")
        return {
            'statusCode': 200,
            'body': {
                'bucket_name': bucket_name,
                'original_image_key': image_key,
                'skipped': True
            }
        }

    resized_key = build_resized_key(image_key, settings)
    logger.info(f"Optimising s3://{bucket_name}/{image_key}")

    try:
        storage = get_storage_backend()
        original = storage.fetch(bucket_name, image_key)
        resized_image = ImageTransform(settings).transform(original.data)
        storage.store(
            bucket_name,
            resized_key,
            resized_image,
            content_type=settings.content_type,
            access_policy=settings.access_policy
        )
    except Exception:
        logger.exception(
            f"Error getting object {image_key} from bucket {bucket_name}. "
            "Make sure they exist and your bucket is in the same region as this function."
        )
        raise

    logger.info(f"Stored optimised image at s3://{bucket_name}/{resized_key}")

    return {
        'statusCode': 200,
        'body': {
            'bucket_name': bucket_name,
            'original_image_key': image_key,
            'resized_image_key': resized_key,
            'original_content_type': original.content_type,
            'content_type': settings.content_type,
            'processing_metadata': {
                'original_size_bytes': len(original.data),
                'resized_size_bytes': len(resized_image),
                'max_width': settings.max_width,
                'storage_provider': storage.get_provider_name()
            }
        }
    }
