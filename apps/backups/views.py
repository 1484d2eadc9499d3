from django.http import HttpResponse
from rest_framework import generics
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.backups.services import backup_filename, dump_snapshot, export_snapshot, import_snapshot, load_snapshot
from apps.common.permissions import RolePermission


class BackupExportView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["backups.manage"]}

    def get(self, request, *args, **kwargs):
        response = HttpResponse(dump_snapshot(export_snapshot()), content_type="application/json; charset=utf-8")
        response["Content-Disposition"] = f'attachment; filename="{backup_filename()}"'
        return response


class BackupImportView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    parser_classes = [JSONParser, MultiPartParser, FormParser]
    capability_map = {"post": ["backups.manage"]}

    def post(self, request, *args, **kwargs):
        upload = request.FILES.get("file")
        payload = load_snapshot(upload.read()) if upload is not None else request.data
        counts = import_snapshot(payload, actor=request.user)
        return Response({"restored": counts}, status=200)
