import os
import boto3

from botocore.config import Config

main_boto_region = os.environ.get('AWS_REGION', 'eu-central-1')

# Transient errors are retried by utils.db with its own bounded policy,
# so botocore itself only makes a single extra attempt
aws_config_ddb = Config(retries={'max_attempts': 2, 'mode': 'standard'}, region_name=main_boto_region,
                        connect_timeout=5, read_timeout=10)


def dynamodb_resource():
    # DynamoDB local is addressed through ENDPOINT_URL
    if os.environ.get('ENDPOINT_URL'):
        return boto3.resource('dynamodb', endpoint_url=os.environ.get('ENDPOINT_URL'), config=aws_config_ddb)
    return boto3.resource('dynamodb', config=aws_config_ddb)
