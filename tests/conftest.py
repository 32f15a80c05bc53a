import io
import pytest
import os
import sys
from unittest.mock import patch
from PIL import Image

# Add src and src/lambdas to Python path for testing; the Lambda bundle is flat,
# so handlers import image_transform as a top-level module
test_dir = os.path.dirname(__file__)
src_dir = os.path.join(test_dir, '..', 'src')
sys.path.insert(0, os.path.abspath(src_dir))
sys.path.insert(0, os.path.abspath(os.path.join(src_dir, 'lambdas')))

EXIF_ORIENTATION_TAG = 0x0112


def encode_image(image, image_format='JPEG', orientation=None, **save_kwargs):
    """Encode a Pillow image, optionally tagged with an EXIF orientation"""
    buffer = io.BytesIO()
    if orientation is not None:
        exif = Image.Exif()
        exif[EXIF_ORIENTATION_TAG] = orientation
        save_kwargs['exif'] = exif.tobytes()
    image.save(buffer, format=image_format, **save_kwargs)
    return buffer.getvalue()


def build_image(width, height, orientation=None, image_format='JPEG', mode='RGB', color=(200, 120, 40)):
    """Encode a solid image"""
    return encode_image(Image.new(mode, (width, height), color), image_format, orientation)


def build_split_image(width, height, orientation=None):
    """
    Encode a JPEG whose top half is red and bottom half is blue.

    Lets tests tell which way a rotation went by sampling the output.
    """
    image = Image.new('RGB', (width, height), (0, 0, 255))
    image.paste((255, 0, 0), (0, 0, width, height // 2))
    return encode_image(image, orientation=orientation)


def build_noisy_image(width, height):
    """Encode a JPEG with enough detail that truncating it loses pixel data"""
    image = Image.effect_noise((width, height), 64).convert('RGB')
    return encode_image(image, quality=95)


@pytest.fixture
def sample_image_data():
    """Fixture providing a 4000x3000 JPEG without EXIF data"""
    return build_image(4000, 3000)


@pytest.fixture
def mock_lambda_context():
    """Fixture providing mock Lambda context"""
    class MockContext:
        def __init__(self):
            self.aws_request_id = 'test-request-id-12345'
            self.function_name = 'test-function'
            self.function_version = '$LATEST'
            self.invoked_function_arn = 'arn:aws:lambda:us-west-2:123456789012:function:test-function'
            self.memory_limit_in_mb = 1024
            self.remaining_time_in_millis = lambda: 30000

    return MockContext()


@pytest.fixture
def make_s3_event():
    """Fixture building S3 ObjectCreated notifications"""
    def _make(bucket_name='test-image-bucket', key='uploads/photo.jpg'):
        return {
            'Records': [
                {
                    'eventSource': 'aws:s3',
                    'eventName': 'ObjectCreated:Put',
                    's3': {
                        'bucket': {'name': bucket_name},
                        'object': {'key': key, 'size': 1024}
                    }
                }
            ]
        }
    return _make


@pytest.fixture
def aws_credentials():
    """Fake credentials so boto3 never reaches a real account"""
    with patch.dict(os.environ, {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-west-2'
    }):
        yield
