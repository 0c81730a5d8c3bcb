from django.urls import path

from . import views

app_name = 'promotions'

urlpatterns = [
    path('eligibility/', views.EligibilityView.as_view(), name='eligibility'),
    path('apply/', views.ApplyView.as_view(), name='apply'),
    path('applications/', views.MyApplicationsView.as_view(), name='my-applications'),
    path('fp/', views.FPChecklistView.as_view(), name='fp-checklist'),
    path('fp/survey/', views.FPSurveyView.as_view(), name='fp-survey'),
    path('fp/apply/', views.FPApplyView.as_view(), name='fp-apply'),
    path('lp-meetings/request/', views.LPMeetingRequestView.as_view(), name='lp-meeting-request'),
    path('lp-meetings/my-scheduled/', views.MyScheduledLPMeetingsView.as_view(), name='lp-meeting-my-scheduled'),
    path('lp-meetings/<int:pk>/complete/', views.LPMeetingCompleteView.as_view(), name='lp-meeting-complete'),
    path(
        'admin/fp/<int:user_id>/lp-meeting-complete/',
        views.AdminLPMeetingCompleteView.as_view(),
        name='admin-lp-meeting-complete',
    ),
    path('admin/applications/', views.AdminApplicationListView.as_view(), name='admin-applications'),
    path('admin/applications/<int:pk>/approve/', views.AdminApplicationApproveView.as_view(), name='admin-approve'),
    path('admin/applications/<int:pk>/reject/', views.AdminApplicationRejectView.as_view(), name='admin-reject'),
    path('admin/lp-meetings/', views.AdminLPMeetingListView.as_view(), name='admin-lp-meetings'),
    path(
        'admin/lp-meetings/<int:pk>/schedule/',
        views.AdminLPMeetingScheduleView.as_view(),
        name='admin-lp-meeting-schedule',
    ),
    path(
        'admin/lp-meetings/<int:pk>/complete/',
        views.AdminLPMeetingCompleteByIdView.as_view(),
        name='admin-lp-meeting-complete-by-id',
    ),
    path(
        'admin/lp-meetings/<int:pk>/no-show/',
        views.AdminLPMeetingNoShowView.as_view(),
        name='admin-lp-meeting-no-show',
    ),
    path(
        'admin/lp-meetings/<int:pk>/cancel/',
        views.AdminLPMeetingCancelView.as_view(),
        name='admin-lp-meeting-cancel',
    ),
    path(
        'admin/manager-assessments/',
        views.AdminManagerAssessmentListView.as_view(),
        name='admin-manager-assessments',
    ),
    path(
        'admin/manager-assessments/run/',
        views.AdminManagerAssessmentRunView.as_view(),
        name='admin-manager-assessment-run',
    ),
    path(
        'admin/manager-assessments/<int:pk>/confirm/',
        views.AdminManagerAssessmentConfirmView.as_view(),
        name='admin-manager-assessment-confirm',
    ),
    path(
        'admin/manager-assessments/<int:pk>/demote/',
        views.AdminManagerAssessmentDemoteView.as_view(),
        name='admin-manager-assessment-demote',
    ),
]
