import os

from werkzeug.middleware.proxy_fix import ProxyFix

from business_portal import create_app

app = create_app()

# Behind Nginx: trust one hop of forwarded headers (rate limiting keys on the client IP)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_host=1, x_proto=1, x_prefix=1)

if __name__ == '__main__':
    app.run(host=os.environ.get('HOST', '127.0.0.1'),
            port=int(os.environ.get('PORT', 5000)),
            debug=os.environ.get('FLASK_ENV', 'development') != 'production')
