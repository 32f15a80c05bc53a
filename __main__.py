"""
Image Optimiser - resizes images uploaded to S3
"""
import pulumi
import pulumi_aws as aws
import json

# Configuration
config = pulumi.Config()
max_width = config.get_int("maxWidth") or 1080
jpeg_quality = config.get_int("jpegQuality") or 75

# S3 bucket for original and optimised images
image_bucket = aws.s3.Bucket(
    "image-optimiser-bucket",
    bucket=f"image-optimiser-{pulumi.get_stack()}",
    server_side_encryption_configuration=aws.s3.BucketServerSideEncryptionConfigurationArgs(
        rule=aws.s3.BucketServerSideEncryptionConfigurationRuleArgs(
            apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationRuleApplyServerSideEncryptionByDefaultArgs(
                sse_algorithm="AES256"
            )
        )
    )
)

# Optimised images are written with the public-read canned ACL, which needs
# object-writer ownership and ACLs left unblocked
bucket_ownership = aws.s3.BucketOwnershipControls(
    "image-optimiser-bucket-ownership",
    bucket=image_bucket.id,
    rule=aws.s3.BucketOwnershipControlsRuleArgs(
        object_ownership="ObjectWriter"
    )
)

bucket_public_access = aws.s3.BucketPublicAccessBlock(
    "image-optimiser-bucket-public-access",
    bucket=image_bucket.id,
    block_public_acls=False,
    ignore_public_acls=False,
    block_public_policy=True,
    restrict_public_buckets=True
)

# IAM role for Lambda functions
lambda_role = aws.iam.Role(
    "lambda-execution-role",
    assume_role_policy=json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Action": "sts:AssumeRole",
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"}
        }]
    })
)

# Lambda basic execution policy
aws.iam.RolePolicyAttachment(
    "lambda-basic-execution",
    role=lambda_role.name,
    policy_arn="arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)

# S3 access policy for Lambda
s3_policy = aws.iam.RolePolicy(
    "lambda-s3-policy",
    role=lambda_role.id,
    policy=pulumi.Output.all(image_bucket.arn).apply(
        lambda args: json.dumps({
            "Version": "2012-10-17",
            "Statement": [{
                "Effect": "Allow",
                "Action": [
                    "s3:GetObject",
                    "s3:PutObject",
                    "s3:PutObjectAcl"
                ],
                "Resource": f"{args[0]}/*"
            }]
        })
    )
)

# Lambda function: Image Resizer
resize_lambda = aws.lambda_.Function(
    "image-resizer",
    runtime="python3.11",
    handler="resize.handler",
    role=lambda_role.arn,
    code=pulumi.AssetArchive({
        "resize.py": pulumi.FileAsset("src/lambdas/resize.py"),
        "image_transform.py": pulumi.FileAsset("src/lambdas/image_transform.py"),
        "storage_backends/": pulumi.FileArchive("src/storage_backends"),
        "./": pulumi.FileArchive("lambda_packages")
    }),
    timeout=60,
    memory_size=1024,
    environment=aws.lambda_.FunctionEnvironmentArgs(
        variables={
            "STORAGE_BACKEND": "s3",
            "MAX_WIDTH": str(max_width),
            "RESIZED_SUFFIX": "optimised",
            "JPEG_QUALITY": str(jpeg_quality),
            "OUTPUT_ACL": "public-read",
            "UPLOAD_PART_SIZE": str(10 * 1024 * 1024),
            "LOG_LEVEL": "INFO"
        }
    )
)

# Lambda permission for S3 notifications
s3_invoke_permission = aws.lambda_.Permission(
    "s3-resize-lambda-permission",
    action="lambda:InvokeFunction",
    function=resize_lambda.name,
    principal="s3.amazonaws.com",
    source_arn=image_bucket.arn
)

# Trigger the resizer on every new object; the handler skips its own output
bucket_notification = aws.s3.BucketNotification(
    "image-optimiser-bucket-notification",
    bucket=image_bucket.id,
    lambda_functions=[
        aws.s3.BucketNotificationLambdaFunctionArgs(
            lambda_function_arn=resize_lambda.arn,
            events=["s3:ObjectCreated:*"]
        )
    ],
    opts=pulumi.ResourceOptions(depends_on=[s3_invoke_permission])
)

# Exports
pulumi.export("bucket_name", image_bucket.bucket)
pulumi.export("resize_lambda_arn", resize_lambda.arn)
