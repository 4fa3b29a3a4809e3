"""
Must-use plugin injected into the staged site.

The plugin pins the site URL to the deployment domain, disables canonical
redirects, and deletes cached pages from the website bucket whenever a post
is saved.
"""

from jinja2 import Template

from ..models.config import INVALIDATION_LIST_NAME

HOOK_FILE_NAME = "serverless-deploy.php"

# WP Offload Media bundles a prefixed copy of the AWS SDK; a site-wide SDK
# is used when the plugin is absent.
OFFLOAD_CLIENT_CLASS = "DeliciousBrains\\WP_Offload_Media\\Aws3\\Aws\\S3\\S3Client"
SDK_CLIENT_CLASS = "Aws\\S3\\S3Client"

HOOK_TEMPLATE = Template("""<?php
/**
 * Plugin Name: Serverless Deploy
 * Description: Serves the site as https://{{ domain }} and purges cached pages from {{ bucket }} on save.
 */

function serverless_deploy_home_url() {
    return 'https://{{ domain }}';
}
add_filter('option_home', 'serverless_deploy_home_url');
add_filter('option_siteurl', 'serverless_deploy_home_url');
remove_filter('template_redirect', 'redirect_canonical');

function serverless_deploy_object_key($path) {
    $path = trim($path, '/');
    return $path === '' ? 'index.html' : $path . '/index.html';
}

function serverless_deploy_cached_keys($post_id) {
    $keys = array();
    $path = wp_parse_url(get_permalink($post_id), PHP_URL_PATH);
    if ($path !== null && $path !== false) {
        $keys[] = serverless_deploy_object_key($path);
    }
    $list = dirname(WP_CONTENT_DIR) . '/{{ invalidation_list }}';
    if (is_readable($list)) {
        foreach (file($list, FILE_IGNORE_NEW_LINES | FILE_SKIP_EMPTY_LINES) as $line) {
            $line = trim($line);
            if (strpos($line, '/') === 0) {
                $keys[] = serverless_deploy_object_key($line);
            }
        }
    }
    return array_values(array_unique($keys));
}

function serverless_deploy_s3_client_class() {
    $candidates = array(
        '{{ offload_client_class }}',
        '{{ sdk_client_class }}',
    );
    foreach ($candidates as $class) {
        if (class_exists($class)) {
            return $class;
        }
    }
    return null;
}

add_action('save_post', function ($post_id) {
    $client_class = serverless_deploy_s3_client_class();
    if (wp_is_post_revision($post_id) || $client_class === null) {
        return;
    }
    $objects = array();
    foreach (serverless_deploy_cached_keys($post_id) as $key) {
        $objects[] = array('Key' => $key);
    }
    if (empty($objects)) {
        return;
    }
    $client = new $client_class(array('version' => 'latest', 'region' => '{{ region }}'));
    $client->deleteObjects(array(
        'Bucket' => '{{ bucket }}',
        'Delete' => array('Objects' => $objects),
    ));
});
""")


def render_hook(domain: str, bucket: str, region: str) -> str:
    """Render the must-use plugin for a deployment."""
    return HOOK_TEMPLATE.render(
        domain=domain,
        bucket=bucket,
        region=region,
        invalidation_list=INVALIDATION_LIST_NAME,
        offload_client_class=OFFLOAD_CLIENT_CLASS,
        sdk_client_class=SDK_CLIENT_CLASS,
    )
